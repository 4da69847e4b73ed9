# ============================================================================
# Code Harness Generator
# ============================================================================
"""
Wraps learner source so that running it prints one tagged line per test case:

    RESULT: <value>
    RESULT: ERROR - <message>

The entry point is found with an ordered list of matchers per language and the
first matcher that hits wins. Sources that already carry their own program
entry point (``int main``, ``static void main`` ...) are left alone, as are
languages without a strategy. Neither case is fatal: the caller gets the
unwrapped source back together with a warning.
"""
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from app.models.practice import TestCase
from app.services.judge.languages import Language

logger = logging.getLogger(__name__)

RESULT_TAG = "RESULT:"
RESULT_PREFIX = "RESULT: "
ERROR_PREFIX = "ERROR - "


# ============================================================================
# Data Classes
# ============================================================================
@dataclass
class HarnessResult:
    """Outcome of wrapping a submission"""
    source: str
    applied: bool
    entry_point: Optional[str] = None
    warning: Optional[str] = None


@dataclass(frozen=True)
class EntryMatcher:
    """A structural pattern locating the function to call"""
    pattern: str
    name_group: int = 1
    type_group: Optional[int] = None
    is_async: bool = False
    is_static: bool = True

    def match(self, source: str) -> Optional["EntryPoint"]:
        found = re.search(self.pattern, source, re.MULTILINE)
        if not found:
            return None
        return EntryPoint(
            name=found.group(self.name_group),
            return_type=found.group(self.type_group) if self.type_group else None,
            is_async=self.is_async,
            is_static=self.is_static,
        )


@dataclass(frozen=True)
class EntryPoint:
    name: str
    return_type: Optional[str] = None
    is_async: bool = False
    is_static: bool = True


@dataclass(frozen=True)
class CallInput:
    """Coerced test input: either a verbatim call or positional arguments"""
    verbatim: Optional[str] = None
    args: Tuple[Any, ...] = ()


def coerce_input(raw: Any) -> CallInput:
    """
    Turn a test input into call arguments.

    Structured (JSON) parsing is tried first, then the raw string. A raw string
    that looks like a call expression is used as the call itself.
    """
    if raw is None:
        return CallInput()
    if not isinstance(raw, str):
        return _as_arguments(raw)

    text = raw.strip()
    if not text:
        return CallInput()
    try:
        value = json.loads(text)
    except ValueError:
        if "(" in text and ")" in text:
            return CallInput(verbatim=text)
        return CallInput(args=(raw,))
    return _as_arguments(value)


def _as_arguments(value: Any) -> CallInput:
    if value is None:
        return CallInput()
    if isinstance(value, (list, tuple)):
        return CallInput(args=tuple(value))
    return CallInput(args=(value,))


def canonical_text(value: Any) -> str:
    """Strings as-is, everything else compact JSON"""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def extract_results(stdout: Optional[str]) -> List[str]:
    """Collect tagged result values in print order, ignoring debug output"""
    results = []
    for line in (stdout or "").splitlines():
        stripped = line.strip()
        if stripped.startswith(RESULT_TAG):
            results.append(stripped[len(RESULT_TAG):].strip())
    return results


# ============================================================================
# Literal Rendering
# ============================================================================
@dataclass(frozen=True)
class LiteralStyle:
    """How a language spells JSON-like values"""
    null: str = "null"
    true: str = "true"
    false: str = "false"
    list_templates: Mapping[str, str] = field(default_factory=lambda: {"any": "[{items}]"})
    map_template: str = "{{{items}}}"
    entry_template: str = "{key}: {value}"
    single_quoted: bool = False
    escape_dollar: bool = False

    def render(self, value: Any) -> str:
        if value is None:
            return self.null
        if isinstance(value, bool):
            return self.true if value else self.false
        if isinstance(value, (int, float)):
            return json.dumps(value)
        if isinstance(value, str):
            return self.quote(value)
        if isinstance(value, (list, tuple)):
            template = self.list_templates.get(
                _element_kind(value), self.list_templates["any"]
            )
            return template.format(items=", ".join(self.render(v) for v in value))
        if isinstance(value, dict):
            entries = ", ".join(
                self.entry_template.format(key=self.render(str(k)), value=self.render(v))
                for k, v in value.items()
            )
            return self.map_template.format(items=entries)
        return self.quote(str(value))

    def quote(self, text: str) -> str:
        if self.single_quoted:
            return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"
        quoted = json.dumps(text, ensure_ascii=False)
        if self.escape_dollar:
            quoted = quoted.replace("$", "\\$")
        return quoted


def _element_kind(values: Sequence[Any]) -> str:
    if not values:
        return "any"
    if all(isinstance(v, bool) for v in values):
        return "bool"
    if any(isinstance(v, bool) for v in values):
        return "any"
    if all(isinstance(v, int) for v in values):
        return "int"
    if all(isinstance(v, (int, float)) for v in values):
        return "float"
    if all(isinstance(v, str) for v in values):
        return "str"
    return "any"


def _indent(code: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(pad + line if line else line for line in code.splitlines())


# ============================================================================
# Language Strategies
# ============================================================================
class HarnessStrategy(ABC):
    """Base class for per-language harness generation"""

    matchers: Tuple[EntryMatcher, ...] = ()
    program_entry: Optional[str] = None
    style: LiteralStyle = LiteralStyle()

    def has_program_entry(self, source: str) -> bool:
        return bool(self.program_entry and re.search(self.program_entry, source, re.MULTILINE))

    def detect_entry(self, source: str) -> Optional[EntryPoint]:
        for matcher in self.matchers:
            entry = matcher.match(source)
            if entry:
                return entry
        return None

    def prepare(self, source: str, entry: EntryPoint) -> None:
        """Hook for strategies that need more context from the source"""
        pass

    def call_expression(self, entry: EntryPoint, call: CallInput) -> str:
        if call.verbatim is not None:
            return call.verbatim
        args = ", ".join(self.style.render(arg) for arg in call.args)
        return f"{entry.name}({args})"

    @abstractmethod
    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        """Return the instrumented program"""
        pass


class PythonHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"^def\s+(\w+)\s*\([^)]*\)\s*(?:->[^:]+)?:"),
        EntryMatcher(r"^async\s+def\s+(\w+)\s*\([^)]*\)\s*(?:->[^:]+)?:", is_async=True),
    )
    program_entry = r"^if\s+__name__\s*==\s*['\"]__main__['\"]\s*:"

    def call_expression(self, entry: EntryPoint, call: CallInput) -> str:
        if call.verbatim is not None:
            expression = call.verbatim
        else:
            expression = f"{entry.name}({', '.join(repr(arg) for arg in call.args)})"
        if entry.is_async:
            return f"__harness_asyncio.run({expression})"
        return expression

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [
            source.rstrip(),
            "",
            "# Harness: Execute test cases",
            "import asyncio as __harness_asyncio",
            "import json as __harness_json",
            "",
            "def __harness_format(value):",
            "    if isinstance(value, str):",
            "        return value",
            "    try:",
            "        return __harness_json.dumps(value, separators=(\",\", \":\"))",
            "    except (TypeError, ValueError):",
            "        return str(value)",
            "",
        ]
        for call in calls:
            lines.extend([
                "try:",
                f"    print(\"{RESULT_PREFIX}\" + __harness_format({call}))",
                "except Exception as __harness_error:",
                f"    print(\"{RESULT_PREFIX}{ERROR_PREFIX}\" + str(__harness_error))",
            ])
        return "\n".join(lines) + "\n"


class JavaScriptHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"(?:function\s+|const\s+|let\s+|var\s+)(\w+)\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"),
        EntryMatcher(r"(?:function\s+|const\s+|let\s+|var\s+)(\w+)\s*=\s*(?:async\s*)?function"),
        EntryMatcher(r"function\s+(\w+)\s*\([^)]*\)"),
        EntryMatcher(r"(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\([^)]*\)"),
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [
            source.rstrip(),
            "",
            "// Harness: Execute test cases",
            "function __harnessFormat(value) {",
            "  if (typeof value === \"string\") return value;",
            "  const json = JSON.stringify(value);",
            "  return json === undefined ? String(value) : json;",
            "}",
        ]
        for call in calls:
            lines.extend([
                "try {",
                f"  console.log(\"{RESULT_PREFIX}\" + __harnessFormat({call}));",
                "} catch (error) {",
                f"  console.log(\"{RESULT_PREFIX}{ERROR_PREFIX}\" + (error && error.message ? error.message : String(error)));",
                "}",
            ])
        return "\n".join(lines) + "\n"


class JavaHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"public\s+static\s+(\w+)\s+(\w+)\s*\([^)]*\)", name_group=2, type_group=1),
        EntryMatcher(r"public\s+(\w+)\s+(\w+)\s*\([^)]*\)", name_group=2, type_group=1, is_static=False),
        EntryMatcher(r"static\s+(\w+)\s+(\w+)\s*\([^)]*\)", name_group=2, type_group=1),
    )
    program_entry = r"static\s+void\s+main\s*\("
    style = LiteralStyle(
        list_templates={
            "int": "new int[]{{{items}}}",
            "float": "new double[]{{{items}}}",
            "bool": "new boolean[]{{{items}}}",
            "str": "new String[]{{{items}}}",
            "any": "new Object[]{{{items}}}",
        },
        map_template="java.util.Map.of({items})",
        entry_template="{key}, {value}",
    )

    def __init__(self):
        self._owner: Optional[str] = None

    def prepare(self, source: str, entry: EntryPoint) -> None:
        found = re.search(r"class\s+(\w+)", source)
        self._owner = found.group(1) if found else None

    def call_expression(self, entry: EntryPoint, call: CallInput) -> str:
        expression = super().call_expression(entry, call)
        if call.verbatim is not None or not self._owner:
            return expression
        if entry.is_static:
            return f"{self._owner}.{expression}"
        return f"new {self._owner}().{expression}"

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        body = []
        for index, call in enumerate(calls):
            if entry.return_type == "void":
                run = [f"{call};", f"System.out.println(\"{RESULT_PREFIX}\");"]
            else:
                run = [
                    f"Object result{index} = {call};",
                    f"System.out.println(\"{RESULT_PREFIX}\" + harnessFormat(result{index}));",
                ]
            body.append("try {")
            body.extend("    " + line for line in run)
            body.append("} catch (Exception e) {")
            body.append(f"    System.out.println(\"{RESULT_PREFIX}{ERROR_PREFIX}\" + e.getMessage());")
            body.append("}")

        main = "\n".join([
            "// Harness: Execute test cases",
            "public static void main(String[] args) {",
            _indent("\n".join(body), 4),
            "}",
            "",
            "private static String harnessFormat(Object value) {",
            "    if (value instanceof int[]) return java.util.Arrays.toString((int[]) value);",
            "    if (value instanceof long[]) return java.util.Arrays.toString((long[]) value);",
            "    if (value instanceof double[]) return java.util.Arrays.toString((double[]) value);",
            "    if (value instanceof boolean[]) return java.util.Arrays.toString((boolean[]) value);",
            "    if (value instanceof Object[]) return java.util.Arrays.deepToString((Object[]) value);",
            "    return String.valueOf(value);",
            "}",
        ])

        # The judge runs `java Main`
        unpublished = re.sub(r"public\s+class\s+(\w+)", r"class \1", source.rstrip())
        if self._owner is None:
            return f"class Main {{\n{_indent(unpublished, 4)}\n\n{_indent(main, 4)}\n}}\n"
        if self._owner == "Main":
            closing = unpublished.rfind("}")
            return f"{unpublished[:closing].rstrip()}\n\n{_indent(main, 4)}\n}}\n"
        return f"{unpublished}\n\nclass Main {{\n{_indent(main, 4)}\n}}\n"


class CSharpHarness(JavaHarness):
    matchers = (
        EntryMatcher(r"public\s+static\s+(\w+)\s+(\w+)\s*\([^)]*\)", name_group=2, type_group=1),
        EntryMatcher(r"static\s+(\w+)\s+(\w+)\s*\([^)]*\)", name_group=2, type_group=1),
    )
    program_entry = r"static\s+(?:async\s+)?(?:void|int|Task)\s+Main\s*\("
    style = LiteralStyle(
        list_templates={
            "int": "new int[] {{ {items} }}",
            "float": "new double[] {{ {items} }}",
            "bool": "new bool[] {{ {items} }}",
            "str": "new string[] {{ {items} }}",
            "any": "new object[] {{ {items} }}",
        },
        map_template="new System.Collections.Generic.Dictionary<string, object> {{ {items} }}",
        entry_template="{{ {key}, {value} }}",
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        body = []
        for index, call in enumerate(calls):
            if entry.return_type == "void":
                run = [f"{call};", f"System.Console.WriteLine(\"{RESULT_PREFIX}\");"]
            else:
                run = [
                    f"var result{index} = {call};",
                    f"System.Console.WriteLine(\"{RESULT_PREFIX}\" + result{index});",
                ]
            body.append("try {")
            body.extend("    " + line for line in run)
            body.append("} catch (System.Exception e) {")
            body.append(f"    System.Console.WriteLine(\"{RESULT_PREFIX}{ERROR_PREFIX}\" + e.Message);")
            body.append("}")

        main = "\n".join([
            "// Harness: Execute test cases",
            "public static void Main(string[] args) {",
            _indent("\n".join(body), 4),
            "}",
        ])
        trimmed = source.rstrip()
        if self._owner is None:
            return f"class Program {{\n{_indent(trimmed, 4)}\n\n{_indent(main, 4)}\n}}\n"
        closing = trimmed.rfind("}")
        return f"{trimmed[:closing].rstrip()}\n\n{_indent(main, 4)}\n}}\n"

    def call_expression(self, entry: EntryPoint, call: CallInput) -> str:
        # Main is injected into the owning class, so static calls need no prefix
        expression = HarnessStrategy.call_expression(self, entry, call)
        if call.verbatim is None and self._owner and not entry.is_static:
            return f"new {self._owner}().{expression}"
        return expression


class CppHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"(\w+)\s+(\w+)\s*\([^)]*\)\s*\{", name_group=2, type_group=1),
        EntryMatcher(r"int\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"void\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"string\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"double\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"bool\s+(\w+)\s*\([^)]*\)\s*\{"),
    )
    program_entry = r"\b(?:int|void)\s+main\s*\("
    style = LiteralStyle(
        null="nullptr",
        list_templates={"any": "{{{items}}}"},
        map_template="{{{items}}}",
        entry_template="{{{key}, {value}}}",
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [
            "#include <iostream>",
            "#include <string>",
            "#include <exception>",
            source.rstrip(),
            "",
            "// Harness: Execute test cases",
            "int main() {",
            "    std::cout << std::boolalpha;",
        ]
        for call in calls:
            if entry.return_type == "void":
                run = f"{call}; std::cout << \"{RESULT_PREFIX}\" << std::endl;"
            else:
                run = f"std::cout << \"{RESULT_PREFIX}\" << {call} << std::endl;"
            lines.extend([
                "    try {",
                f"        {run}",
                "    } catch (const std::exception& e) {",
                f"        std::cout << \"{RESULT_PREFIX}{ERROR_PREFIX}\" << e.what() << std::endl;",
                "    } catch (...) {",
                f"        std::cout << \"{RESULT_PREFIX}{ERROR_PREFIX}unknown exception\" << std::endl;",
                "    }",
            ])
        lines.extend(["    return 0;", "}"])
        return "\n".join(lines) + "\n"


class CHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"(\w+)\s+(\w+)\s*\([^)]*\)\s*\{", name_group=2, type_group=1),
        EntryMatcher(r"int\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"void\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"char\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"double\s+(\w+)\s*\([^)]*\)\s*\{"),
        EntryMatcher(r"float\s+(\w+)\s*\([^)]*\)\s*\{"),
    )
    program_entry = r"\b(?:int|void)\s+main\s*\("
    style = LiteralStyle(
        null="NULL",
        true="1",
        false="0",
        list_templates={
            "int": "(int[]){{{items}}}",
            "float": "(double[]){{{items}}}",
            "str": "(const char*[]){{{items}}}",
            "any": "{{{items}}}",
        },
    )
    formats = {
        "int": "%d", "long": "%ld", "short": "%d", "bool": "%d", "_Bool": "%d",
        "char": "%c", "float": "%g", "double": "%g", "unsigned": "%u",
    }

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        # No exceptions in C: each call runs unguarded
        lines = ["#include <stdio.h>", source.rstrip(), "", "// Harness: Execute test cases", "int main(void) {"]
        for call in calls:
            if entry.return_type == "void":
                lines.append(f"    {call}; printf(\"{RESULT_PREFIX}\\n\");")
            else:
                fmt = self.formats.get(entry.return_type or "int", "%d")
                lines.append(f"    printf(\"{RESULT_PREFIX}{fmt}\\n\", {call});")
        lines.extend(["    return 0;", "}"])
        return "\n".join(lines) + "\n"


class GoHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"func\s+(\w+)\s*\([^)]*\)\s+(\w+)"),
        EntryMatcher(r"func\s+(\w+)\s*\([^)]*\)"),
    )
    program_entry = r"func\s+main\s*\("
    style = LiteralStyle(
        null="nil",
        list_templates={
            "int": "[]int{{{items}}}",
            "float": "[]float64{{{items}}}",
            "bool": "[]bool{{{items}}}",
            "str": "[]string{{{items}}}",
            "any": "[]interface{{}}{{{items}}}",
        },
        map_template="map[string]interface{{}}{{{items}}}",
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [self._ensure_fmt(source.rstrip()), "", "// Harness: Execute test cases", "func main() {"]
        for call in calls:
            lines.extend([
                "\tfunc() {",
                "\t\tdefer func() {",
                "\t\t\tif r := recover(); r != nil {",
                f"\t\t\t\tfmt.Printf(\"{RESULT_PREFIX}{ERROR_PREFIX}%v\\n\", r)",
                "\t\t\t}",
                "\t\t}()",
                f"\t\tfmt.Printf(\"{RESULT_PREFIX}%v\\n\", {call})",
                "\t}()",
            ])
        lines.append("}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _ensure_fmt(source: str) -> str:
        if re.search(r"\"fmt\"", source):
            return source
        package = re.search(r"^package\s+\w+[^\n]*$", source, re.MULTILINE)
        if not package:
            return f"package main\n\nimport \"fmt\"\n\n{source}"
        return f"{source[:package.end()]}\n\nimport \"fmt\"{source[package.end():]}"


class RustHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"fn\s+(\w+)\s*\([^)]*\)\s*->\s*\w+"),
        EntryMatcher(r"fn\s+(\w+)\s*\([^)]*\)"),
    )
    program_entry = r"fn\s+main\s*\("
    style = LiteralStyle(
        null="None",
        list_templates={"any": "vec![{items}]"},
        map_template="std::collections::HashMap::from([{items}])",
        entry_template="({key}, {value})",
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [source.rstrip(), "", "// Harness: Execute test cases", "fn main() {"]
        for call in calls:
            lines.extend([
                f"    match std::panic::catch_unwind(|| {call}) {{",
                f"        Ok(value) => println!(\"{RESULT_PREFIX}{{:?}}\", value),",
                f"        Err(_) => println!(\"{RESULT_PREFIX}{ERROR_PREFIX}panicked\"),",
                "    }",
            ])
        lines.append("}")
        return "\n".join(lines) + "\n"


class RubyHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"def\s+(\w+)\s*\([^)]*\)"),
    )
    style = LiteralStyle(
        null="nil",
        map_template="{{{items}}}",
        entry_template="{key} => {value}",
        single_quoted=True,
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [source.rstrip(), "", "# Harness: Execute test cases", "require 'json'"]
        for call in calls:
            lines.extend([
                "begin",
                f"  __result = {call}",
                f"  puts \"{RESULT_PREFIX}\" + (__result.is_a?(String) ? __result : __result.to_json)",
                "rescue StandardError => e",
                f"  puts \"{RESULT_PREFIX}{ERROR_PREFIX}\" + e.message",
                "end",
            ])
        return "\n".join(lines) + "\n"


class PHPHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"function\s+(\w+)\s*\([^)]*\)"),
    )
    style = LiteralStyle(
        map_template="[{items}]",
        entry_template="{key} => {value}",
        single_quoted=True,
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        code = source.rstrip()
        if code.endswith("?>"):
            code = code[:-2].rstrip()
        if not code.lstrip().startswith("<?php"):
            code = f"<?php\n{code}"
        lines = [code, "", "// Harness: Execute test cases"]
        for call in calls:
            lines.extend([
                "try {",
                f"    $__result = {call};",
                f"    echo \"{RESULT_PREFIX}\" . (is_string($__result) ? $__result : json_encode($__result)) . \"\\n\";",
                "} catch (\\Throwable $e) {",
                f"    echo \"{RESULT_PREFIX}{ERROR_PREFIX}\" . $e->getMessage() . \"\\n\";",
                "}",
            ])
        return "\n".join(lines) + "\n"


class SwiftHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"func\s+(\w+)\s*\([^)]*\)\s*->"),
        EntryMatcher(r"func\s+(\w+)\s*\([^)]*\)"),
    )
    style = LiteralStyle(null="nil", map_template="[{items}]")

    def __init__(self):
        self._labels: List[Optional[str]] = []

    def call_expression(self, entry: EntryPoint, call: CallInput) -> str:
        if call.verbatim is not None:
            return call.verbatim
        labels = self._labels
        args = []
        for position, arg in enumerate(call.args):
            label = labels[position] if position < len(labels) else None
            rendered = self.style.render(arg)
            args.append(f"{label}: {rendered}" if label else rendered)
        return f"{entry.name}({', '.join(args)})"

    def prepare(self, source: str, entry: EntryPoint) -> None:
        # Argument labels: `_ x: Int` has none, `a: Int` and `from a: Int` do
        found = re.search(rf"func\s+{re.escape(entry.name)}\s*\(([^)]*)\)", source)
        self._labels = []
        if not found or not found.group(1).strip():
            return
        for param in found.group(1).split(","):
            head = param.split(":", 1)[0].split()
            label = head[0] if head else None
            self._labels.append(None if label == "_" else label)

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        # Swift traps cannot be caught, so calls run unguarded
        lines = [source.rstrip(), "", "// Harness: Execute test cases"]
        for call in calls:
            lines.append(f"print(\"{RESULT_PREFIX}\\({call})\")")
        return "\n".join(lines) + "\n"


class KotlinHarness(HarnessStrategy):
    matchers = (
        EntryMatcher(r"fun\s+(\w+)\s*\([^)]*\)\s*:"),
        EntryMatcher(r"fun\s+(\w+)\s*\([^)]*\)"),
    )
    program_entry = r"fun\s+main\s*\("
    style = LiteralStyle(
        list_templates={
            "int": "intArrayOf({items})",
            "float": "doubleArrayOf({items})",
            "bool": "booleanArrayOf({items})",
            "any": "arrayOf({items})",
        },
        map_template="mapOf({items})",
        entry_template="{key} to {value}",
        escape_dollar=True,
    )

    def build(self, source: str, entry: EntryPoint, calls: List[str]) -> str:
        lines = [source.rstrip(), "", "// Harness: Execute test cases", "fun main() {"]
        for index, call in enumerate(calls):
            lines.extend([
                "    try {",
                f"        val result{index} = {call}",
                f"        println(\"{RESULT_PREFIX}\" + result{index})",
                "    } catch (e: Exception) {",
                f"        println(\"{RESULT_PREFIX}{ERROR_PREFIX}\" + e.message)",
                "    }",
            ])
        lines.append("}")
        return "\n".join(lines) + "\n"


# Closed dispatch table; Language.UNKNOWN deliberately has no strategy
STRATEGIES: Dict[Language, Optional[type]] = {
    Language.PYTHON: PythonHarness,
    Language.JAVASCRIPT: JavaScriptHarness,
    Language.TYPESCRIPT: JavaScriptHarness,
    Language.JAVA: JavaHarness,
    Language.CPP: CppHarness,
    Language.C: CHarness,
    Language.CSHARP: CSharpHarness,
    Language.GO: GoHarness,
    Language.RUST: RustHarness,
    Language.RUBY: RubyHarness,
    Language.PHP: PHPHarness,
    Language.SWIFT: SwiftHarness,
    Language.KOTLIN: KotlinHarness,
    Language.UNKNOWN: None,
}


# ============================================================================
# Harness Generator
# ============================================================================
class HarnessGenerator:
    """Builds instrumented programs for the judge"""

    def generate(
        self,
        source: str,
        language: str,
        test_cases: Sequence[TestCase]
    ) -> HarnessResult:
        lang = Language.parse(language)
        strategy_cls = STRATEGIES.get(lang)
        if strategy_cls is None:
            return self._unwrapped(source, f"No harness template for language: {language}, executing as-is")

        strategy = strategy_cls()
        if strategy.has_program_entry(source):
            logger.info(f"Source already defines a {lang.value} program entry point, leaving it unwrapped")
            return HarnessResult(source=source, applied=False, entry_point="main")

        entry = strategy.detect_entry(source)
        if entry is None:
            return self._unwrapped(source, f"No {lang.value} entry point detected, executing as-is")

        strategy.prepare(source, entry)
        calls = [strategy.call_expression(entry, coerce_input(tc.input)) for tc in test_cases]
        wrapped = strategy.build(source, entry, calls)
        logger.debug(f"Wrapped {lang.value} source around {entry.name} for {len(calls)} test case(s)")
        return HarnessResult(source=wrapped, applied=True, entry_point=entry.name)

    @staticmethod
    def _unwrapped(source: str, warning: str) -> HarnessResult:
        logger.warning(f"⚠️ {warning}")
        return HarnessResult(source=source, applied=False, warning=warning)
