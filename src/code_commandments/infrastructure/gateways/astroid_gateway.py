import logging
from pathlib import PurePath
from typing import Iterator, Optional

import astroid  # type: ignore[import-untyped]

from code_commandments.domain.context import (
    DeclarationTree,
    DeclaredEntity,
    DeclaredField,
    DeclaredMember,
    DeclaredParameter,
    DeclaredStatement,
)
from code_commandments.domain.protocols import DeclarationParserProtocol

logger = logging.getLogger(__name__)

_STATEMENT_NODES = (
    astroid.nodes.Assign,
    astroid.nodes.AnnAssign,
    astroid.nodes.AugAssign,
    astroid.nodes.Expr,
    astroid.nodes.Return,
    astroid.nodes.Raise,
)
_SCOPE_NODES = (astroid.nodes.FunctionDef, astroid.nodes.ClassDef, astroid.nodes.Lambda)


class AstroidDeclarationParser(DeclarationParserProtocol):
    """Declaration tree for Python documents, built from astroid's AST."""

    def parse(self, path: str, text: str) -> Optional[DeclarationTree]:
        """Parse text; None when astroid cannot build a module from it."""
        module_name = PurePath(path).stem if path else ""
        try:
            module = astroid.parse(text, module_name=module_name, path=path or None)
        except Exception as exc:  # syntax errors and astroid build failures alike
            logger.debug("Could not parse %s: %s", path, exc)
            return None
        return DeclarationTree(
            path=path,
            entities=tuple(self._entity(node) for node in module.nodes_of_class(astroid.nodes.ClassDef)),
            imports=self._imports(module),
            module_name=module_name,
            raw=module,
        )

    def _entity(self, node: astroid.nodes.ClassDef) -> DeclaredEntity:
        return DeclaredEntity(
            name=node.name,
            line=node.lineno,
            end_line=AstroidDeclarationParser._end_line(node),
            bases=tuple(base.as_string() for base in node.bases),
            decorators=AstroidDeclarationParser._decorators(node),
            members=tuple(
                self._member(child) for child in node.body if isinstance(child, astroid.nodes.FunctionDef)
            ),
            fields=tuple(self._fields(node)),
        )

    def _member(self, node: astroid.nodes.FunctionDef) -> DeclaredMember:
        return DeclaredMember(
            name=node.name,
            line=node.lineno,
            end_line=AstroidDeclarationParser._end_line(node),
            decorators=AstroidDeclarationParser._decorators(node),
            parameters=tuple(self._parameters(node.args, node.lineno)),
            statements=tuple(
                self._statement(stmt) for stmt in node.nodes_of_class(_STATEMENT_NODES, skip_klass=_SCOPE_NODES)
            ),
            is_async=isinstance(node, astroid.nodes.AsyncFunctionDef),
        )

    def _parameters(self, args: astroid.nodes.Arguments, def_line: int) -> Iterator[DeclaredParameter]:
        """Parameters in declaration order; star parameters report the def line."""
        positional = list(args.posonlyargs or []) + list(args.args or [])
        annotations = list(args.posonlyargs_annotations or []) + list(args.annotations or [])
        first_default = len(positional) - len(args.defaults or [])
        for index, arg in enumerate(positional):
            annotation = annotations[index] if index < len(annotations) else None
            yield DeclaredParameter(
                name=arg.name,
                annotation=annotation.as_string() if annotation is not None else None,
                has_default=index >= first_default,
                line=arg.lineno,
            )
        if args.vararg:
            yield DeclaredParameter(name="*" + args.vararg, line=def_line)
        kw_annotations = list(args.kwonlyargs_annotations or [])
        kw_defaults = list(args.kw_defaults or [])
        for index, arg in enumerate(args.kwonlyargs or []):
            annotation = kw_annotations[index] if index < len(kw_annotations) else None
            yield DeclaredParameter(
                name=arg.name,
                annotation=annotation.as_string() if annotation is not None else None,
                has_default=index < len(kw_defaults) and kw_defaults[index] is not None,
                line=arg.lineno,
            )
        if args.kwarg:
            yield DeclaredParameter(name="**" + args.kwarg, line=def_line)

    def _statement(self, node: astroid.nodes.NodeNG) -> DeclaredStatement:
        targets: list[str] = []
        if isinstance(node, astroid.nodes.Assign):
            target_nodes = list(node.targets)
        elif isinstance(node, (astroid.nodes.AnnAssign, astroid.nodes.AugAssign)):
            target_nodes = [node.target]
        else:
            target_nodes = []
        for target in target_nodes:
            for name in target.nodes_of_class((astroid.nodes.AssignName, astroid.nodes.AssignAttr)):
                targets.append(name.as_string())
        calls = tuple(
            call.func.as_string()
            for call in node.nodes_of_class(astroid.nodes.Call, skip_klass=_SCOPE_NODES)
            if isinstance(call.func, (astroid.nodes.Name, astroid.nodes.Attribute))
        )
        return DeclaredStatement(
            kind=type(node).__name__.lower(),
            line=node.lineno,
            end_line=AstroidDeclarationParser._end_line(node),
            source=node.as_string(),
            targets=tuple(targets),
            calls=calls,
        )

    def _fields(self, node: astroid.nodes.ClassDef) -> Iterator[DeclaredField]:
        for child in node.body:
            if isinstance(child, astroid.nodes.AnnAssign) and isinstance(child.target, astroid.nodes.AssignName):
                yield DeclaredField(name=child.target.name, line=child.lineno,
                                    annotation=child.annotation.as_string())
            elif isinstance(child, astroid.nodes.Assign):
                for target in child.targets:
                    if isinstance(target, astroid.nodes.AssignName):
                        yield DeclaredField(name=target.name, line=child.lineno)

    def _imports(self, module: astroid.nodes.Module) -> dict[str, str]:
        """Local alias -> fully qualified name."""
        imports: dict[str, str] = {}
        for node in module.nodes_of_class((astroid.nodes.Import, astroid.nodes.ImportFrom)):
            for name, alias in node.names:
                if isinstance(node, astroid.nodes.ImportFrom):
                    prefix = "." * (node.level or 0) + (node.modname or "")
                    separator = "" if not prefix or prefix.endswith(".") else "."
                    imports[alias or name] = prefix + separator + name
                else:
                    imports[alias or name] = name
        return imports

    @staticmethod
    def _decorators(node: astroid.nodes.NodeNG) -> tuple[str, ...]:
        if not node.decorators:
            return ()
        return tuple(decorator.as_string() for decorator in node.decorators.nodes)

    @staticmethod
    def _end_line(node: astroid.nodes.NodeNG) -> int:
        return getattr(node, "end_lineno", None) or node.tolineno
