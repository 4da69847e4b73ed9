# ============================================================================
# Judge Language Table
# ============================================================================
"""
Languages known to the grading pipeline.

``Language`` is the closed set of harness strategies; anything else parses to
``Language.UNKNOWN``. ``LANGUAGE_IDS`` maps canonical language names to
their Judge0 CE runtime ids and is read-only for the life of the process.
Both lookups resolve aliases through the same table.
"""
from enum import Enum
from types import MappingProxyType
from typing import Dict, Optional


class Language(str, Enum):
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    JAVA = "java"
    CPP = "cpp"
    C = "c"
    CSHARP = "csharp"
    GO = "go"
    RUST = "rust"
    RUBY = "ruby"
    PHP = "php"
    SWIFT = "swift"
    KOTLIN = "kotlin"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: str) -> "Language":
        try:
            language = cls(canonical_language_name(name))
        except ValueError:
            return cls.UNKNOWN
        return language


_ALIASES: Dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "nodejs": "javascript",
    "ts": "typescript",
    "c++": "cpp",
    "cs": "csharp",
    "c#": "csharp",
    "golang": "go",
    "rs": "rust",
    "rb": "ruby",
    "kt": "kotlin",
}


def normalize_language_name(name: str) -> str:
    return (name or "").strip().lower()


def canonical_language_name(name: str) -> str:
    """Lowercased name with aliases such as "rb" or "c#" resolved"""
    key = normalize_language_name(name)
    return _ALIASES.get(key, key)


def runtime_id(name: str) -> Optional[int]:
    return LANGUAGE_IDS.get(canonical_language_name(name))


LANGUAGE_IDS = MappingProxyType({
    "assembly": 45,      # NASM 2.14.02
    "bash": 46,          # Bash 5.0.0
    "basic": 47,         # FreeBASIC 1.07.1
    "c": 50,             # GCC 9.2.0
    "csharp": 51,        # Mono 6.6.0
    "cpp": 54,           # GCC 9.2.0
    "lisp": 55,          # Common Lisp (SBCL 2.0.0)
    "d": 56,             # DMD 2.089.1
    "elixir": 57,        # 1.9.4
    "erlang": 58,        # OTP 22.2
    "fortran": 59,       # GFortran 9.2.0
    "go": 60,            # 1.13.5
    "haskell": 61,       # GHC 8.8.1
    "java": 62,          # OpenJDK 13.0.1
    "javascript": 63,    # Node.js 12.14.0
    "lua": 64,           # 5.3.5
    "ocaml": 65,         # 4.09.0
    "octave": 66,        # 5.1.0
    "pascal": 67,        # FPC 3.0.4
    "php": 68,           # 7.4.1
    "prolog": 69,        # GNU Prolog 1.4.5
    "python": 71,        # 3.8.1
    "ruby": 72,          # 2.7.0
    "rust": 73,          # 1.40.0
    "typescript": 74,    # 3.7.4
    "cobol": 77,         # GnuCOBOL 2.2
    "kotlin": 78,        # 1.3.70
    "objective-c": 79,   # Clang 7.0.1
    "r": 80,             # 4.0.0
    "scala": 81,         # 2.13.2
    "sql": 82,           # SQLite 3.27.2
    "swift": 83,         # 5.2.3
    "vbnet": 84,         # vbnc 0.0.0.5943
    "perl": 85,          # 5.28.1
    "clojure": 86,       # 1.10.1
    "fsharp": 87,        # .NET Core SDK 3.1.202
    "groovy": 88,        # 3.0.3
})
