"""Shared constants for dbdownloader."""

SOURCE_BACKUP = "backup"
SOURCE_LIVE_DUMP = "live-dump"
SOURCE_LIVE_DUMP_STRUCTURE = "live-dump-structure"
SOURCE_STAGING_DUMP = "staging-dump"
SOURCE_STAGING_DUMP_STRUCTURE = "staging-dump-structure"

VALID_SOURCES = (
    SOURCE_BACKUP,
    SOURCE_LIVE_DUMP,
    SOURCE_LIVE_DUMP_STRUCTURE,
    SOURCE_STAGING_DUMP,
    SOURCE_STAGING_DUMP_STRUCTURE,
)

PRODUCTION_ENVIRONMENT = "production"

SQL_EXTENSION = ".sql"
GZIP_SQL_EXTENSION = ".sql.gz"
ZIP_EXTENSION = ".zip"
IMPORTABLE_EXTENSIONS = (SQL_EXTENSION, GZIP_SQL_EXTENSION, ZIP_EXTENSION)

DUMPS_SUBDIR = "db-dumps"
BACKUP_DUMP_TEMPLATE = "mysql-{db_name}.sql.gz"
CREDENTIAL_FILE_PREFIX = "mysql-login-"
CREDENTIAL_FILE_SUFFIX = ".cnf"

NAME_PATTERN = r"[A-Za-z0-9_-]+"
REMOTE_FILENAME_FORBIDDEN = (";", "&", "|", "`", "$", "\n", "\r", "/")

DIR_MODE = 0o755
CREDENTIAL_FILE_MODE = 0o600

RSYNC_FLAGS = "-vzrlptD"
PV_FLAGS = ("-p", "-e", "-t", "-a")

TABLE_STRUCTURE_MARKER = "-- Table structure for table "
