from unidrive.models.file import File
from unidrive.models.folder import Folder
from unidrive.models.user import User

__all__ = ["File", "Folder", "User"]
