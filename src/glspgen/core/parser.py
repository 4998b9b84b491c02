"""
Parser for Langium grammar files.

Reads the declarations the generator cares about and produces a
:class:`~glspgen.core.grammar.GrammarModel`:

- ``grammar Name`` header
- ``interface Name extends A, B { prop?: Type[] }``
- ``type Name = 'a' | 'b';`` and ``type Name = A | B;``
- parser rules, whose assignments (``=``, ``+=``, ``?=``, ``[Type:ID]``)
  infer an interface when no explicit one exists
- ``terminal`` and ``import`` statements (skipped, terminal return types kept)

Leading ``// @key value`` comments attach to the next declaration as
annotations.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import ParseError, make_parse_error
from .grammar import PRIMITIVE_TYPES, GrammarInterface, GrammarModel, Property, TypeAlias

logger = logging.getLogger(__name__)

IDENT = r"[A-Za-z_][A-Za-z0-9_]*"

GRAMMAR_RE = re.compile(rf"grammar\s+({IDENT})[^\n]*")
IMPORT_RE = re.compile(r"import\s+(?:'[^']*'|\"[^\"]*\")\s*;?")
TERMINAL_RE = re.compile(rf"(?:hidden\s+)?terminal\s+(?:fragment\s+)?({IDENT})(?:\s+returns\s+({IDENT}))?\s*:")
INTERFACE_RE = re.compile(rf"interface\s+({IDENT})(?:\s+extends\s+({IDENT}(?:\s*,\s*{IDENT})*))?\s*\{{")
TYPE_RE = re.compile(rf"type\s+({IDENT})\s*=")
RULE_RE = re.compile(
    rf"(entry\s+)?(fragment\s+)?({IDENT})(?:\s+returns\s+({IDENT}))?(?:\s+infers\s+{IDENT})?\s*:"
)
ANNOTATION_RE = re.compile(r"@(\w+)\s+(.+)")
PROPERTY_RE = re.compile(rf"^({IDENT})\s*(\?)?\s*:\s*(.+)$")
ASSIGNMENT_RE = re.compile(
    rf"({IDENT})\s*(\+=|\?=|=)\s*(\[\s*@?({IDENT})(?:\s*:\s*{IDENT})?\s*\]|'[^']*'|\"[^\"]*\"|\(|{IDENT})"
)
ACTION_RE = re.compile(rf"\{{\s*(?:infer\s+)?({IDENT})(?:\s*\.\s*({IDENT})\s*(\+=|=)\s*current)?\s*\}}")
LITERAL_RE = re.compile(r"^'([^']*)'$|^\"([^\"]*)\"$")

# Return types of Langium's common terminals
TERMINAL_TYPES: dict[str, str] = {
    "ID": "string",
    "STRING": "string",
    "INT": "number",
    "NUMBER": "number",
    "FLOAT": "number",
    "BOOLEAN": "boolean",
    "DATE": "Date",
}


def sanitize_project_name(name: str) -> str:
    """Lower-case a name and replace non-alphanumerics with dashes."""
    return re.sub(r"[^a-zA-Z0-9]", "-", name).lower()


class LangiumGrammarParser:
    """
    Parser for ``.langium`` grammar files.

    Example:
        parser = LangiumGrammarParser()
        grammar = parser.parse_grammar_file(Path("statemachine.langium"))
    """

    def parse_grammar_file(self, path: Path | str) -> GrammarModel:
        """
        Parse a grammar file.

        Args:
            path: Grammar file path

        Returns:
            Parsed grammar model

        Raises:
            ParseError: On syntax errors or text that is not UTF-8
            OSError: If the file cannot be read
        """
        path = Path(path)
        data = path.read_bytes()
        try:
            text = data.decode("utf-8").replace("\r\n", "\n").replace("\r", "\n")
        except UnicodeDecodeError as e:
            prefix = data[: e.start].decode("utf-8", errors="replace")
            line = prefix.count("\n") + 1
            column = len(prefix) - (prefix.rfind("\n") + 1) + 1
            raise make_parse_error(
                f"Grammar is not valid UTF-8 ({e.reason} at byte {e.start})", path, line, column
            ) from e
        project_name = sanitize_project_name(path.stem)
        return self.parse_grammar(text, project_name=project_name, file=path)

    def parse_grammar(
        self,
        text: str,
        project_name: str = "",
        file: Path | None = None,
    ) -> GrammarModel:
        """
        Parse grammar text.

        Args:
            text: Grammar source
            project_name: Project identifier to record on the model
            file: Source path for error locations

        Returns:
            Parsed grammar model
        """
        scanner = _GrammarScanner(text, file)
        scanner.scan()
        model = scanner.build_model(project_name)
        logger.debug(
            "Parsed grammar %s: %d interfaces, %d types, %d rules",
            model.grammar_name or project_name,
            len(model.interfaces),
            len(model.types),
            len(model.rules),
        )
        return model

    def validate_grammar_file(self, path: Path | str) -> bool:
        """Check whether a grammar file exists and parses."""
        path = Path(path)
        if not path.is_file():
            return False
        try:
            self.parse_grammar_file(path)
        except (ParseError, OSError, ValueError) as e:
            logger.debug("Grammar %s failed validation: %s", path, e)
            return False
        return True


class _RuleDecl:
    """Parser rule collected during scanning."""

    def __init__(self, name: str, returns: str | None, body: str, annotations: dict[str, str]):
        self.name = name
        self.returns = returns
        self.body = body
        self.annotations = annotations


class _GrammarScanner:
    """Single pass over grammar text, collecting declarations."""

    def __init__(self, text: str, file: Path | None):
        self.source = text
        self.file = file
        self.text = self._blank_block_comments(text)
        self.pos = 0
        self.grammar_name: str | None = None
        self.interfaces: list[GrammarInterface] = []
        self.types: list[TypeAlias] = []
        self.rules: list[_RuleDecl] = []
        self.terminal_types: dict[str, str] = dict(TERMINAL_TYPES)
        self.pending_annotations: dict[str, str] = {}

    # -- location helpers -------------------------------------------------

    def _location(self, pos: int) -> tuple[int, int]:
        line = self.source.count("\n", 0, pos) + 1
        column = pos - (self.source.rfind("\n", 0, pos) + 1) + 1
        return line, column

    def _error(self, message: str, pos: int) -> ParseError:
        line, column = self._location(pos)
        lines = self.source.split("\n")
        start = max(0, line - 3)
        snippet = "\n".join(lines[start : line + 2])
        return make_parse_error(message, self.file, line, column, snippet)

    def _blank_block_comments(self, text: str) -> str:
        """Replace ``/* ... */`` with spaces, keeping newlines for locations."""
        out = []
        i = 0
        while True:
            start = text.find("/*", i)
            if start == -1:
                out.append(text[i:])
                break
            end = text.find("*/", start + 2)
            if end == -1:
                raise self._error("Unterminated block comment", start)
            out.append(text[i:start])
            out.append(re.sub(r"[^\n]", " ", text[start : end + 2]))
            i = end + 2
        return "".join(out)

    # -- scanning -----------------------------------------------------------

    def scan(self) -> None:
        text = self.text
        while True:
            self._skip_whitespace()
            if self.pos >= len(text):
                return

            if text.startswith("//", self.pos):
                self._read_line_comment()
                continue

            for handler in (
                self._read_grammar,
                self._read_import,
                self._read_terminal,
                self._read_interface,
                self._read_type,
                self._read_rule,
            ):
                if handler():
                    self.pending_annotations = {}
                    break
            else:
                raise self._error(f"Unexpected input: {text[self.pos : self.pos + 20]!r}", self.pos)

    def _skip_whitespace(self) -> None:
        text = self.text
        while self.pos < len(text) and text[self.pos].isspace():
            if text[self.pos] == "\n" and self._blank_line_follows():
                # A blank line detaches comments from the next declaration
                self.pending_annotations = {}
            self.pos += 1

    def _blank_line_follows(self) -> bool:
        nxt = self.text.find("\n", self.pos + 1)
        segment = self.text[self.pos + 1 : nxt if nxt != -1 else len(self.text)]
        return nxt != -1 and not segment.strip()

    def _read_line_comment(self) -> None:
        end = self.text.find("\n", self.pos)
        if end == -1:
            end = len(self.text)
        comment = self.text[self.pos + 2 : end].strip()
        match = ANNOTATION_RE.match(comment)
        if match:
            self.pending_annotations[match.group(1)] = match.group(2).strip()
        self.pos = end

    def _match(self, pattern: re.Pattern[str]) -> re.Match[str] | None:
        return pattern.match(self.text, self.pos)

    def _read_grammar(self) -> bool:
        match = self._match(GRAMMAR_RE)
        if not match:
            return False
        self.grammar_name = match.group(1)
        self.pos = match.end()
        return True

    def _read_import(self) -> bool:
        match = self._match(IMPORT_RE)
        if not match:
            return False
        self.pos = match.end()
        return True

    def _read_terminal(self) -> bool:
        match = self._match(TERMINAL_RE)
        if not match:
            return False
        name, returns = match.group(1), match.group(2)
        self.terminal_types[name] = returns or "string"
        self.pos = self._find_statement_end(match.end())
        return True

    def _read_interface(self) -> bool:
        match = self._match(INTERFACE_RE)
        if not match:
            return False
        name = match.group(1)
        super_types = tuple(s.strip() for s in (match.group(2) or "").split(",") if s.strip())
        body_start = match.end()
        body_end = self.text.find("}", body_start)
        nested = self.text.find("{", body_start)
        if body_end == -1 or (nested != -1 and nested < body_end):
            raise self._error(f"Unbalanced braces in interface '{name}'", match.start())

        properties = self._parse_interface_body(name, body_start, body_end)
        self.interfaces.append(
            GrammarInterface(
                name=name,
                properties=tuple(properties),
                super_types=super_types,
                annotations=dict(self.pending_annotations),
            )
        )
        self.pos = body_end + 1
        return True

    def _parse_interface_body(self, iface: str, start: int, end: int) -> list[Property]:
        properties: list[Property] = []
        offset = start
        for chunk in re.split(r"([;,\n])", self.text[start:end]):
            chunk_pos = offset
            offset += len(chunk)
            decl = chunk.strip()
            if not decl or decl in (";", ",", "\n"):
                continue
            match = PROPERTY_RE.match(decl)
            if not match:
                raise self._error(f"Invalid property declaration in interface '{iface}': {decl!r}", chunk_pos)
            prop_name, optional, type_expr = match.group(1), bool(match.group(2)), match.group(3).strip()
            properties.append(self._parse_property_type(iface, prop_name, optional, type_expr, chunk_pos))
        return properties

    def _parse_property_type(
        self, iface: str, name: str, optional: bool, type_expr: str, pos: int
    ) -> Property:
        array = False
        if type_expr.endswith("[]"):
            array = True
            type_expr = type_expr[:-2].strip()
        if type_expr.startswith("(") and type_expr.endswith(")"):
            type_expr = type_expr[1:-1].strip()

        if "|" in type_expr:
            members = [m.strip() for m in type_expr.split("|")]
            if all(LITERAL_RE.match(m) for m in members):
                return Property(name=name, type="string", optional=optional, array=array)
            raise self._error(
                f"Inline union '{type_expr}' on {iface}.{name} is not supported; declare a type alias",
                pos,
            )

        cross_reference = type_expr.startswith("@")
        if cross_reference:
            type_expr = type_expr[1:].strip()
        if not re.fullmatch(IDENT, type_expr):
            raise self._error(f"Invalid type '{type_expr}' for property {iface}.{name}", pos)
        return Property(
            name=name,
            type=type_expr,
            optional=optional,
            array=array,
            cross_reference=cross_reference,
        )

    def _read_type(self) -> bool:
        match = self._match(TYPE_RE)
        if not match:
            return False
        end = self._find_statement_end(match.end())
        definition = self.text[match.end() : end - 1].strip()
        if not definition:
            raise self._error(f"Type '{match.group(1)}' has an empty definition", match.start())
        self.types.append(self._make_alias(match.group(1), definition, dict(self.pending_annotations)))
        self.pos = end
        return True

    def _make_alias(self, name: str, definition: str, annotations: dict[str, str]) -> TypeAlias:
        members = [m.strip() for m in definition.split("|")]
        literals: list[str] = []
        for member in members:
            literal = LITERAL_RE.match(member)
            if not literal:
                literals = []
                break
            literals.append(literal.group(1) if literal.group(1) is not None else literal.group(2))
        return TypeAlias(
            name=name,
            definition=definition,
            union_types=tuple(literals),
            annotations=annotations,
        )

    def _read_rule(self) -> bool:
        match = self._match(RULE_RE)
        if not match:
            return False
        fragment = bool(match.group(2))
        end = self._find_statement_end(match.end())
        body = self.text[match.end() : end - 1].strip()
        if not fragment:
            self.rules.append(
                _RuleDecl(match.group(3), match.group(4), body, dict(self.pending_annotations))
            )
        self.pos = end
        return True

    def _find_statement_end(self, start: int) -> int:
        """Return the index just past the ``;`` ending a statement."""
        text = self.text
        quote: str | None = None
        i = start
        while i < len(text):
            ch = text[i]
            if quote:
                if ch == "\\":
                    i += 2
                    continue
                if ch == quote:
                    quote = None
            elif ch in ("'", '"'):
                quote = ch
            elif ch == "/" and text.startswith("//", i):
                nl = text.find("\n", i)
                i = len(text) if nl == -1 else nl
                continue
            elif ch == ";":
                return i + 1
            i += 1
        raise self._error("Missing ';' at end of statement", start)

    # -- model assembly -----------------------------------------------------

    def build_model(self, project_name: str) -> GrammarModel:
        explicit = {iface.name for iface in self.interfaces}
        aliases = {alias.name for alias in self.types}
        inferred: dict[str, GrammarInterface] = {}
        primitive_returns = set(self.terminal_types.values()) | PRIMITIVE_TYPES
        # Rules returning another type resolve to it; data type rules keep their alias name
        rule_types = {
            rule.name: rule.returns
            for rule in self.rules
            if rule.returns and rule.returns not in primitive_returns
        }

        for rule in self.rules:
            target = rule.returns or rule.name
            if target in explicit or target in aliases:
                continue
            if rule.returns and rule.returns in primitive_returns:
                self.types.append(TypeAlias(name=rule.name, definition=rule.returns))
                aliases.add(rule.name)
                continue

            declarations = self._infer_declarations(rule, rule_types)
            has_actions = len(declarations) > 1
            for type_name, properties, from_action in declarations:
                if type_name in explicit or type_name in aliases:
                    continue
                if properties or from_action:
                    _merge_inferred(inferred, type_name, properties, rule.annotations)
            if target not in inferred and not has_actions and self._is_alternatives(rule.body):
                self.types.append(self._make_alias(target, rule.body, rule.annotations))
                aliases.add(target)

        # Rule return types that only exist through actions (``Expression``)
        declared = explicit | aliases | set(inferred)
        referenced = {
            prop.type
            for iface in [*self.interfaces, *inferred.values()]
            for prop in iface.properties
        }
        for type_name in dict.fromkeys(rule_types.values()):
            if type_name in referenced and type_name not in declared:
                inferred[type_name] = GrammarInterface(name=type_name)

        return GrammarModel(
            project_name=project_name or sanitize_project_name(self.grammar_name or ""),
            grammar_name=self.grammar_name,
            interfaces=tuple(self.interfaces) + tuple(inferred.values()),
            types=tuple(self.types),
            rules=tuple(rule.name for rule in self.rules),
            source_path=str(self.file) if self.file else None,
        )

    @staticmethod
    def _is_alternatives(body: str) -> bool:
        members = [m.strip() for m in body.split("|")]
        return len(members) > 1 and all(
            re.fullmatch(IDENT, m) or LITERAL_RE.match(m) for m in members
        )

    def _infer_declarations(
        self,
        rule: _RuleDecl,
        rule_types: dict[str, str],
    ) -> list[tuple[str, list[Property], bool]]:
        """
        Properties assigned by a rule, grouped by the type that receives them.

        An action (``{infer BinExpr.left=current}``) switches the produced
        type for the rest of the rule; its ``current`` feature becomes a
        property typed as the rule's return type.

        Returns:
            ``(type name, properties, produced by an action)`` in body order
        """
        target = rule.returns or rule.name
        body = rule.body
        # Actions are blanked so their assignments never match
        blanked = ACTION_RE.sub(lambda m: " " * len(m.group(0)), body)

        segments: list[tuple[str, int, int, list[Property], bool]] = []
        current_type, start, leading, from_action = target, 0, [], False
        for match in ACTION_RE.finditer(body):
            segments.append((current_type, start, match.start(), leading, from_action))
            action_type, feature, operator = match.groups()
            leading = []
            if feature:
                leading = [Property(name=feature, type=target, array=operator == "+=")]
            current_type, start, from_action = action_type, match.end(), True
        segments.append((current_type, start, len(body), leading, from_action))

        declarations = []
        for type_name, seg_start, seg_end, leading, from_action in segments:
            properties = self._infer_properties(blanked, seg_start, seg_end, rule_types)
            known = {p.name for p in leading}
            declarations.append(
                (type_name, leading + [p for p in properties if p.name not in known], from_action)
            )
        return declarations

    def _infer_properties(
        self,
        body: str,
        start: int,
        end: int,
        rule_types: dict[str, str],
    ) -> list[Property]:
        seen: dict[str, Property] = {}
        for match in ASSIGNMENT_RE.finditer(body, start, end):
            name, operator, value = match.group(1), match.group(2), match.group(3)
            cross_reference = value.startswith("[")
            if cross_reference:
                prop_type = match.group(4)
            elif operator == "?=":
                prop_type = "boolean"
            elif value == "(" or LITERAL_RE.match(value):
                prop_type = "string"
            elif value in self.terminal_types:
                prop_type = self.terminal_types[value]
            else:
                prop_type = rule_types.get(value, value)

            array = operator == "+="
            optional = operator == "?=" or (not array and _is_optional_at(body, match.start(), match.end()))
            prop = Property(
                name=name,
                type=prop_type,
                optional=optional,
                array=array,
                cross_reference=cross_reference,
            )
            previous = seen.get(name)
            if previous is None:
                seen[name] = prop
            elif array and not previous.array:
                seen[name] = previous.model_copy(update={"array": True})
        return list(seen.values())


def _merge_inferred(
    inferred: dict[str, GrammarInterface],
    name: str,
    properties: list[Property],
    annotations: dict[str, str],
) -> None:
    existing = inferred.get(name)
    if existing is None:
        inferred[name] = GrammarInterface(name=name, properties=tuple(properties), annotations=annotations)
        return
    known = {p.name for p in existing.properties}
    merged = existing.properties + tuple(p for p in properties if p.name not in known)
    inferred[name] = existing.model_copy(update={"properties": merged})


def _is_optional_at(body: str, start: int, end: int) -> bool:
    """Whether an assignment is followed by ``?``/``*`` or sits in such a group."""
    tail = body[end:].lstrip()
    if tail[:1] in ("?", "*"):
        return True

    # Find groups enclosing the assignment and check their cardinality
    stack: list[int] = []
    quote: str | None = None
    enclosing: list[int] = []
    for i, ch in enumerate(body):
        if quote:
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            stack.append(i)
        elif ch == ")" and stack:
            open_pos = stack.pop()
            if open_pos < start and i >= end:
                enclosing.append(i)
    for close_pos in enclosing:
        after = body[close_pos + 1 :].lstrip()
        if after[:1] in ("?", "*"):
            return True
    return False
