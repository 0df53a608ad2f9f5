"""Canonical form of a Python program, for structural answer comparison.

This module is shipped as source text into the sandbox by
`verifier.ast_compare` and executed there, so it depends on nothing but the
standard library and must not import from the package.

Options (all default to True):
  renameLocals      loop targets, parameters and comprehension targets become
                    _v0, _v1, ... in order of first binding; nested scopes keep
                    counting so shadowed names stay distinguishable
  normalizeSlices   identity slice bounds (lower 0, step 1, explicit None) are
                    dropped, so x[0:3:1], x[0:3] and x[:3] compare equal
  ignoreDocstrings  a leading string statement of a function or class body is
                    removed; at module level only when more statements follow
"""

import ast

DEFAULT_OPTIONS = {"renameLocals": True, "normalizeSlices": True, "ignoreDocstrings": True}


def _is_int(node, value):
    return isinstance(node, ast.Constant) and type(node.value) is int and node.value == value


def _is_none(node):
    return isinstance(node, ast.Constant) and node.value is None


def _is_docstring(stmt):
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


class Canonicalize(ast.NodeTransformer):
    def __init__(self, opts=None):
        opts = {**DEFAULT_OPTIONS, **(opts or {})}
        self.rename_locals = bool(opts["renameLocals"])
        self.normalize_slices = bool(opts["normalizeSlices"])
        self.ignore_docstrings = bool(opts["ignoreDocstrings"])
        self.scopes = []
        self.counter = 0

    # scopes

    def _push(self):
        self.scopes.append({})

    def _pop(self):
        self.scopes.pop()

    def _bind(self, name):
        if not self.rename_locals or not self.scopes:
            return name
        scope = self.scopes[-1]
        if name not in scope:
            scope[name] = f"_v{self.counter}"
            self.counter += 1
        return scope[name]

    def _lookup(self, name):
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        return name

    def _bind_target(self, target):
        if isinstance(target, ast.Name):
            target.id = self._bind(target.id)
        elif isinstance(target, (ast.Tuple, ast.List)):
            target.elts = [self._bind_target(elt) for elt in target.elts]
        elif isinstance(target, ast.Starred):
            target.value = self._bind_target(target.value)
        else:
            target = self.visit(target)
        return target

    def _visit_signature(self, args):
        args.defaults = [self.visit(d) for d in args.defaults]
        args.kw_defaults = [self.visit(d) if d is not None else None for d in args.kw_defaults]
        for arg in self._all_args(args):
            if arg.annotation is not None:
                arg.annotation = self.visit(arg.annotation)

    def _bind_arguments(self, args):
        for arg in self._all_args(args):
            arg.arg = self._bind(arg.arg)

    @staticmethod
    def _all_args(args):
        ordered = list(args.posonlyargs) + list(args.args)
        if args.vararg is not None:
            ordered.append(args.vararg)
        ordered.extend(args.kwonlyargs)
        if args.kwarg is not None:
            ordered.append(args.kwarg)
        return ordered

    def _visit_body(self, body, strip_docstring):
        if strip_docstring and self.ignore_docstrings and body and _is_docstring(body[0]):
            body = body[1:]
        out = []
        for stmt in body:
            new = self.visit(stmt)
            if new is None:
                continue
            out.extend(new if isinstance(new, list) else [new])
        return out

    # scope-creating nodes

    def visit_Module(self, node):
        self._push()
        strip = len(node.body) > 1
        node.body = self._visit_body(node.body, strip_docstring=strip)
        self._pop()
        return node

    def visit_Expression(self, node):
        self._push()
        node.body = self.visit(node.body)
        self._pop()
        return node

    def _visit_function(self, node):
        node.decorator_list = [self.visit(d) for d in node.decorator_list]
        self._visit_signature(node.args)
        if node.returns is not None:
            node.returns = self.visit(node.returns)
        self._push()
        self._bind_arguments(node.args)
        node.body = self._visit_body(node.body, strip_docstring=True)
        self._pop()
        return node

    visit_FunctionDef = _visit_function
    visit_AsyncFunctionDef = _visit_function

    def visit_Lambda(self, node):
        self._visit_signature(node.args)
        self._push()
        self._bind_arguments(node.args)
        node.body = self.visit(node.body)
        self._pop()
        return node

    def visit_ClassDef(self, node):
        node.decorator_list = [self.visit(d) for d in node.decorator_list]
        node.bases = [self.visit(b) for b in node.bases]
        node.keywords = [self.visit(k) for k in node.keywords]
        self._push()
        node.body = self._visit_body(node.body, strip_docstring=True)
        self._pop()
        return node

    def _visit_comprehension(self, node, result_fields):
        # the first iterable is evaluated in the enclosing scope
        first = node.generators[0]
        first.iter = self.visit(first.iter)
        self._push()
        for index, gen in enumerate(node.generators):
            if index:
                gen.iter = self.visit(gen.iter)
            gen.target = self._bind_target(gen.target)
            gen.ifs = [self.visit(cond) for cond in gen.ifs]
        for name in result_fields:
            setattr(node, name, self.visit(getattr(node, name)))
        self._pop()
        return node

    def visit_ListComp(self, node):
        return self._visit_comprehension(node, ("elt",))

    def visit_SetComp(self, node):
        return self._visit_comprehension(node, ("elt",))

    def visit_GeneratorExp(self, node):
        return self._visit_comprehension(node, ("elt",))

    def visit_DictComp(self, node):
        return self._visit_comprehension(node, ("key", "value"))

    # bindings and lookups

    def visit_For(self, node):
        node.iter = self.visit(node.iter)
        node.target = self._bind_target(node.target)
        node.body = self._visit_body(node.body, strip_docstring=False)
        node.orelse = self._visit_body(node.orelse, strip_docstring=False)
        return node

    visit_AsyncFor = visit_For

    def visit_Name(self, node):
        node.id = self._lookup(node.id)
        return node

    # slices

    def visit_Slice(self, node):
        if self.normalize_slices:
            if _is_int(node.lower, 0) or _is_none(node.lower):
                node.lower = None
            if _is_none(node.upper):
                node.upper = None
            if _is_int(node.step, 1) or _is_none(node.step):
                node.step = None
        return self.generic_visit(node)


def parse_code(code, mode="auto"):
    """Parse `code`; in auto mode fall back to expression mode. None when invalid."""
    modes = ("exec", "eval") if mode == "auto" else (mode,)
    for parse_mode in modes:
        try:
            return ast.parse(code, mode=parse_mode)
        except (SyntaxError, ValueError, RecursionError, MemoryError):
            continue
    return None


def canonical_tree(code, opts=None, mode="auto"):
    tree = parse_code(code, mode)
    if tree is None:
        return None
    try:
        return Canonicalize(opts).visit(tree)
    except RecursionError:
        return None


def normalize_code(code, opts=None, mode="auto"):
    """Canonical dump of `code` without location info, or None if it does not parse."""
    tree = canonical_tree(code, opts, mode)
    if tree is None:
        return None
    return ast.dump(tree, include_attributes=False)


def canonical_source(code, opts=None, mode="auto"):
    """Canonical form rendered back to source, or None if it does not parse."""
    tree = canonical_tree(code, opts, mode)
    if tree is None:
        return None
    return ast.unparse(tree)
