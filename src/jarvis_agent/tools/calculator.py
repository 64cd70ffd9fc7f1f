import ast
import math
import operator
from typing import Union

from ..utils.logging import Icons, pretty_log

Number = Union[int, float]

MAX_EXPRESSION_LENGTH = 200
MAX_EXPONENT = 1000

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class CalculationError(ValueError):
    pass


def _eval_node(node: ast.AST) -> Number:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise CalculationError("Exponent too large")
        try:
            return _BIN_OPS[type(node.op)](left, right)
        except ZeroDivisionError:
            raise CalculationError("Division by zero")
        except OverflowError:
            raise CalculationError("Result too large")
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise CalculationError(f"Unsupported syntax: {type(node).__name__}")


def evaluate(expression: str) -> Number:
    """
    Evaluates a plain arithmetic expression (numbers, + - * / // % **,
    unary signs and parentheses). Names, calls and attribute access are
    rejected before anything is evaluated.
    """
    text = expression.strip().replace("^", "**")
    if not text:
        raise CalculationError("Empty expression")
    if len(text) > MAX_EXPRESSION_LENGTH:
        raise CalculationError("Expression too long")
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError:
        raise CalculationError("Invalid syntax")
    result = _eval_node(tree)
    if isinstance(result, float) and (math.isinf(result) or math.isnan(result)):
        raise CalculationError("Result is not a finite number")
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


async def tool_calculate(expression: str) -> str:
    pretty_log("Calculate", expression, icon=Icons.TOOL_CALC)
    try:
        result = evaluate(expression)
    except CalculationError as e:
        return f"Error: Could not evaluate \"{expression}\" ({e})"
    return f"{expression} = {result}"
