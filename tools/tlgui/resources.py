"""Protocol tokens, option tiers, mirror list, and user-facing texts."""

# Fixed argument telling the backend it is driven by an external frontend
FRONTEND_FLAG = "-from_ext_gui"
DEFAULT_PERL = "perl"
BACKEND_SCRIPT = "install-tl"

LOG_FILE_NAME = "tlgui.log"

# Lines starting with one of these never reach the protocol parser
DEBUG_PREFIXES = ("D:", "DD:", "DDD:")

# Policy: required space must stay this many size units below free space
DISK_MARGIN = 100

# Log exit shows a message box below this many lines, the log page above
SHORT_LOG_LINES = 10

# Number of trailing log lines attached to an error dialog
ERROR_CONTEXT_LINES = 20

SCHEME_CUSTOM = "scheme-custom"
SCHEME_CUSTOM_DESC = "Custom scheme"

# -- Wire tokens --

DESCS = "descs"
END_DESCS = "enddescs"
VARS = "vars"
END_VARS = "endvars"
BINARIES = "binaries"
END_BINARIES = "endbinaries"
END_MENU_DATA = "endmenudata"
MENU_DATA = "menudata"
START_INST = "startinst"
CALC = "calc"
CHECK_DIR = "checkdir"
MESS_YESNO = "mess_yesno"
END_MESS = "endmess"
END_LOAD = "endload"

# -- Command line --

REPOSITORY_OPTIONS = ("-location", "-url", "-repository", "-repos", "-repo")
SELECT_REPOSITORY_OPTION = "-select-repository"
GUI_OPTION = "-gui"

CTAN_MIRROR = "https://mirror.ctan.org/systems/texlive/tlnet"

MIRRORS = [
    ("CTAN (automatic)", CTAN_MIRROR),
    ("Europe / Germany", "https://ftp.fau.de/ctan/systems/texlive/tlnet"),
    ("Europe / Netherlands", "https://ftp.snt.utwente.nl/pub/software/tex/systems/texlive/tlnet"),
    ("North America / USA", "https://mirrors.rit.edu/CTAN/systems/texlive/tlnet"),
    ("Asia / Japan", "https://ftp.jaist.ac.jp/pub/CTAN/systems/texlive/tlnet"),
    ("Oceania / Australia", "https://mirror.aarnet.edu.au/pub/CTAN/systems/texlive/tlnet"),
]

# -- Menu tiers --

BASIC_KEYS = (
    "TEXDIR",
    "instopt_letter",
    "instopt_adjustpath",
    "collection-texworks",
)

# Edited through their own dialogs rather than as single ConfigTable keys
COLLECTIONS_SELECTION = "collections"
BINARIES_SELECTION = "binaries"
SELECTION_KEYS = frozenset({COLLECTIONS_SELECTION, BINARIES_SELECTION})

ADVANCED_KEYS = (
    "selected_scheme",
    COLLECTIONS_SELECTION,
    BINARIES_SELECTION,
    "TEXMFLOCAL",
    "TEXMFHOME",
    "instopt_portable",
    "instopt_write18_restricted",
    "tlpdbopt_create_formats",
    "tlpdbopt_install_docfiles",
    "tlpdbopt_install_srcfiles",
    "tlpdbopt_desktop_integration",
    "tlpdbopt_file_assocs",
    "tlpdbopt_w32_multi_user",
    "instopt_adjustrepo",
)

ALL_TREES_KEYS = (
    "TEXMFSYSVAR",
    "TEXMFSYSCONFIG",
    "TEXMFVAR",
    "TEXMFCONFIG",
)

# Options whose value changes what gets installed, hence the disk usage
CALC_KEYS = frozenset({
    "selected_scheme",
    "collection-texworks",
    "tlpdbopt_install_docfiles",
    "tlpdbopt_install_srcfiles",
})

OPTION_LABELS = {
    "TEXDIR": "Installation root",
    "TEXMFLOCAL": "Local additions",
    "TEXMFHOME": "Per-user additions",
    "TEXMFSYSVAR": "Generated files",
    "TEXMFSYSCONFIG": "Configuration files",
    "TEXMFVAR": "Per-user generated files",
    "TEXMFCONFIG": "Per-user configuration",
    "instopt_letter": "Default paper size letter",
    "instopt_adjustpath": "Adjust searchpath",
    "collection-texworks": "Install TeXworks front end",
    "instopt_portable": "Portable setup",
    "instopt_write18_restricted": "Allow execution of restricted list of programs",
    "tlpdbopt_create_formats": "Create all format files",
    "tlpdbopt_install_docfiles": "Install font/macro doc tree",
    "tlpdbopt_install_srcfiles": "Install font/macro source tree",
    "tlpdbopt_desktop_integration": "Desktop integration",
    "tlpdbopt_file_assocs": "File associations",
    "tlpdbopt_w32_multi_user": "Install for all users",
    "instopt_adjustrepo": "After install, set CTAN as source for package updates",
}

PATH_KEYS = frozenset({
    "TEXDIR",
    "TEXMFLOCAL",
    "TEXMFHOME",
    "TEXMFSYSVAR",
    "TEXMFSYSCONFIG",
    "TEXMFVAR",
    "TEXMFCONFIG",
})

# -- Texts --

TEXT_TITLE = "TeX Live Installer"
TEXT_LOADING = (
    "Trying to load {location}.\n\n"
    "If this takes too long, press Abort or choose another repository."
)
TEXT_REALLY_ABORT = "Really abort?"
TEXT_NOT_ENOUGH_ROOM = "Not enough room"
TEXT_BACKEND_CLOSED = "Unexpected closed backend.\nThis should not have happened!"
TEXT_READ_ERROR = "Error while reading from the back end.\nThis should not have happened!"
TEXT_START_ERROR = "Error starting the back end"
TEXT_CANNOT_WRITE = "Cannot be created or cannot be written to"
TEXT_NONEMPTY_DIR = "Target directory {path} non-empty;\nare you sure?"
TEXT_OWN_PLATFORM = "Cannot deselect own platform"
TEXT_INSTALL_DONE = "Installation finished. Press Close to exit."
