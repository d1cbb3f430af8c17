class URLs:
    ROOT = "/api/v1/folders/root"
    TREE = "/api/v1/folders/tree"
    FOLDERS = "/api/v1/folders"
    FOLDER = "/api/v1/folders/{}"
    FOLDER_LOCK = "/api/v1/folders/{}/lock"
    FOLDER_UNLOCK = "/api/v1/folders/{}/unlock"
    FOLDER_VERIFY = "/api/v1/folders/{}/verify"
    SEARCH = "/api/v1/search"
    UPLOAD = "/api/v1/files/upload"
    CHECK_EXISTENCE = "/api/v1/files/check-existence"
    FILE = "/api/v1/files/{}"
    DOWNLOAD = "/api/v1/files/{}/download"
    RENAME = "/api/v1/items/rename"
    MOVE = "/api/v1/items/move"
    CONFLICTS = "/api/v1/items/conflicts"
    DELETE = "/api/v1/items/delete"
    TRASH = "/api/v1/trash"
    RESTORE = "/api/v1/trash/restore"
    EMPTY_TRASH = "/api/v1/trash/empty"
    QUOTA = "/api/v1/quota"
    SHARES = "/api/v1/shares"
    SHARES_CANCEL = "/api/v1/shares/cancel"
    SHARE_PUBLIC = "/api/v1/shares/public/{}"
    SHARE_DOWNLOAD = "/api/v1/shares/public/{}/download"
    RECONCILE = "/api/v1/admin/reconcile"
