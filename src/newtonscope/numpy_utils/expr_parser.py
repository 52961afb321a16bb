# -*- coding: utf-8 -*-
import ast
import logging

import mpmath

import newtonscope.settings
from newtonscope.errors import FormulaError


logger = logging.getLogger(__name__)

VARIABLE = "z"
SAFE_CONSTS = ["pi", "e", "i"]
SAFE_FUNCS = ["sin", "cos", "tan", "sinh", "cosh", "tanh", "exp", "log",
              "sqrt"]
SAFE_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Pow)
SAFE_UNARYOPS = (ast.UAdd, ast.USub)

# Probe point used to catch arity / type errors at parse time
_PROBE = (0.5, 0.25)


def acceptable_expr(expr):
    """
    Return None if `expr` (an ast.Expression) only uses the admissible
    constructs for a function of z, otherwise the offending node.
    """
    safe_names = [VARIABLE] + SAFE_CONSTS

    def inner(expr):
        if isinstance(expr, ast.Expression):
            return inner(expr.body)

        elif isinstance(expr, ast.Constant):
            if isinstance(expr.value, bool) or not isinstance(
                expr.value, (int, float, complex)
            ):
                return expr
            return None

        elif isinstance(expr, ast.UnaryOp):
            if not isinstance(expr.op, SAFE_UNARYOPS):
                return expr
            return inner(expr.operand)

        elif isinstance(expr, ast.BinOp):
            if not isinstance(expr.op, SAFE_BINOPS):
                return expr
            return inner(expr.left) or inner(expr.right)

        elif isinstance(expr, ast.Name):
            return None if expr.id in safe_names else expr

        elif isinstance(expr, ast.Call):
            if (
                not isinstance(expr.func, ast.Name)
                or expr.func.id not in SAFE_FUNCS
                or expr.keywords
                or len(expr.args) != 1
            ):
                return expr
            return inner(expr.args[0])

        return expr

    return inner(expr)


class _Literals(ast.NodeTransformer):
    """ Replaces the numeric literals by a call to `_num` with their source
    text, so that they are read at full precision """
    def __init__(self, source):
        self.source = source

    def visit_Constant(self, node):
        text = ast.get_source_segment(self.source, node) or repr(node.value)
        new_node = ast.Call(
            func=ast.Name(id="_num", ctx=ast.Load()),
            args=[ast.Constant(value=text)],
            keywords=[]
        )
        return ast.copy_location(new_node, node)


def _num(text):
    """ numeric literal -> mpf | mpc """
    text = text.replace("_", "")
    if text[-1] in "jJ":
        return mpmath.mpc(0, mpmath.mpf(text[:-1] or "1"))
    try:
        return mpmath.mpf(text)
    except ValueError:
        # hexadecimal, octal or binary integer literal
        return mpmath.mpf(ast.literal_eval(text))


class _NotPolynomial(Exception):
    pass


def _not_polynomial(*args):
    raise _NotPolynomial()


class _Poly:
    """ Minimal polynomial arithmetic, used to extract the exact coefficients
    of a polynomial formula. coeffs[k] is the coefficient of z**k."""
    def __init__(self, coeffs):
        self.coeffs = list(coeffs)

    @staticmethod
    def wrap(other):
        if isinstance(other, _Poly):
            return other
        return _Poly([other])

    def __add__(self, other):
        a, b = self.coeffs, _Poly.wrap(other).coeffs
        n = max(len(a), len(b))
        a = a + [0] * (n - len(a))
        b = b + [0] * (n - len(b))
        return _Poly([x + y for (x, y) in zip(a, b)])

    __radd__ = __add__

    def __neg__(self):
        return _Poly([-x for x in self.coeffs])

    def __pos__(self):
        return self

    def __sub__(self, other):
        return self + (-_Poly.wrap(other))

    def __rsub__(self, other):
        return _Poly.wrap(other) + (-self)

    def __mul__(self, other):
        a, b = self.coeffs, _Poly.wrap(other).coeffs
        res = [0] * (len(a) + len(b) - 1)
        for i, x in enumerate(a):
            for j, y in enumerate(b):
                res[i + j] += x * y
        return _Poly(res)

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, _Poly):
            if other.degree > 0:
                raise _NotPolynomial()
            other = other.coeffs[0]
        return _Poly([x / other for x in self.coeffs])

    def __rtruediv__(self, other):
        if self.degree > 0:
            raise _NotPolynomial()
        return _Poly([other / self.coeffs[0]])

    def __pow__(self, other):
        if isinstance(other, _Poly):
            if other.degree > 0:
                raise _NotPolynomial()
            other = other.coeffs[0]
        if isinstance(other, mpmath.mpc):
            if other.imag != 0:
                raise _NotPolynomial()
            other = other.real
        if other < 0 or int(other) != other:
            raise _NotPolynomial()
        n = int(other)
        degree = self.degree
        if degree == 0:
            return _Poly([self.coeffs[0] ** n])
        max_order = newtonscope.settings.max_order
        if n * degree > max_order:
            raise FormulaError(
                f"Polynomial degree {n * degree} exceeds the maximum "
                f"supported degree {max_order}"
            )
        res = _Poly([1])
        for _ in range(n):
            res = res * self
        return res

    def __rpow__(self, other):
        if self.degree > 0:
            raise _NotPolynomial()
        return _Poly([other ** self.coeffs[0]])

    @property
    def degree(self):
        d = len(self.coeffs) - 1
        while d > 0 and self.coeffs[d] == 0:
            d -= 1
        return d


def _namespace(z, funcs):
    ns = {
        "_num": _num,
        VARIABLE: z,
        "pi": mpmath.pi,
        "e": mpmath.e,
        "i": mpmath.mpc(0, 1),
    }
    for name in SAFE_FUNCS:
        ns[name] = funcs(name)
    return ns


def func_parser(expr):
    """
    expr : str, the formula in z, e.g. "z^3 - 1"
    Returns
    the compiled code object, if safe ; raises FormulaError otherwise
    """
    source = expr.strip().replace("^", "**")
    if source == "":
        raise FormulaError("Empty formula")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise FormulaError(
            f"Syntax error in formula '{expr}' at column {exc.offset}"
        ) from exc

    offending = acceptable_expr(tree)
    if offending is not None:
        segment = ast.get_source_segment(source, offending) or source
        raise FormulaError(
            f"Unsupported expression in formula: '{segment}'. Admissible: "
            f"numbers, '{VARIABLE}', {', '.join(SAFE_CONSTS)}, + - * / ^ and "
            f"functions {', '.join(SAFE_FUNCS)}"
        )

    tree = ast.fix_missing_locations(_Literals(source).visit(tree))
    return compile(tree, "<formula>", "eval")


class Formula:
    def __init__(self, expr):
        """
        A function f(z) parsed from a user-input string. Polynomial formulas
        are stored as their exact coefficients, other formulas as an
        analytic `mpmath` function.

        Parameters:
        -----------
        expr: str
            The formula, a function of the variable z. The standard operations
            (+, -, *, /, ** or ^) are accepted, the constants pi, e, i and
            the functions sin, cos, tan, sinh, cosh, tanh, exp, log, sqrt.

        Raises
        ------
        FormulaError
            If the expression is invalid, or is a polynomial of degree higher
            than `newtonscope.settings.max_order`
        """
        self.expr = expr
        self._code = func_parser(expr)
        self.coefficients = self._polynomial_coefficients()

        if self.coefficients is not None:
            max_order = newtonscope.settings.max_order
            if self.degree > max_order:
                raise FormulaError(
                    f"Polynomial degree {self.degree} exceeds the maximum "
                    f"supported degree {max_order}"
                )
            logger.debug(f"Polynomial formula {expr}, degree {self.degree}")
        else:
            # Catches arity errors (e.g. 'sin(z)(z)') early
            try:
                self(mpmath.mpc(*_PROBE))
            except TypeError as exc:
                raise FormulaError(
                    f"Invalid formula '{expr}': {exc}"
                ) from exc
            except (ValueError, ZeroDivisionError, OverflowError):
                pass
            logger.debug(f"Analytic formula {expr}")

    def _polynomial_coefficients(self):
        ns = _namespace(_Poly([0, 1]), lambda name: _not_polynomial)
        try:
            res = eval(self._code, {"__builtins__": {}}, ns)
        except _NotPolynomial:
            return None
        except ZeroDivisionError as exc:
            raise FormulaError(
                f"Division by zero in formula '{self.expr}'"
            ) from exc
        res = _Poly.wrap(res)
        coeffs = [mpmath.mpmathify(c) for c in res.coeffs[:res.degree + 1]]
        return [mpmath.mpc(c) for c in coeffs]

    @property
    def is_polynomial(self):
        return self.coefficients is not None

    @property
    def degree(self):
        """ Polynomial degree, None for a non-polynomial formula """
        if self.coefficients is None:
            return None
        return len(self.coefficients) - 1

    @property
    def default_order(self):
        """ Taylor order needed to represent this formula """
        if self.coefficients is None:
            return newtonscope.settings.max_order
        return max(self.degree, 1)

    def __call__(self, z):
        """ Evaluates f at the (mpmath) point z, at the current precision """
        if self.coefficients is not None:
            return _horner(self.coefficients, z)
        ns = _namespace(z, lambda name: getattr(mpmath, name))
        return mpmath.mpmathify(eval(self._code, {"__builtins__": {}}, ns))

    def derivatives(self, z, n):
        """
        Return the list [f(z), f'(z), ..., f^(n)(z)] at the current mpmath
        precision.

        Raises
        ------
        FormulaError
            If f cannot be evaluated at z
        """
        if self.coefficients is not None:
            res = []
            coeffs = self.coefficients
            for _ in range(n + 1):
                res.append(_horner(coeffs, z))
                coeffs = [k * c for (k, c) in enumerate(coeffs)][1:] or [0]
            return res
        try:
            return list(mpmath.diffs(self, z, n))
        except (ValueError, ZeroDivisionError, OverflowError, TypeError
        ) as exc:
            reason = type(exc).__name__
            if str(exc):
                reason += f": {exc}"
            raise FormulaError(
                f"Unable to evaluate '{self.expr}' near {z} ({reason})"
            ) from exc

    def __str__(self):
        return self.expr

    def __repr__(self):
        return f"Formula({self.expr!r})"

    def __reduce__(self):
        """ Serialisation of a Formula object. """
        return (self.__class__, (self.expr,))


def _horner(coeffs, z):
    res = mpmath.mpc(0)
    for c in reversed(coeffs):
        res = res * z + c
    return res
