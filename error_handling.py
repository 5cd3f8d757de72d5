"""
Error taxonomy and parse-error diagnostics for the toyexpr interpreter
Parse errors carry source positions and render with context lines and suggestions
"""

from typing import List, Optional, Dict
from difflib import get_close_matches
from pyparsing import col, lineno


KEYWORDS = ("val", "var", "add", "if", "let", "function", "call", "set", "block")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class InterpreterError(Exception):
    """Base class for every error raised while parsing or evaluating"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EvalError(InterpreterError):
    """Generic evaluation failure"""
    pass


class ValueTypeError(EvalError):
    """An integer or a function was expected but the expression is something else"""
    pass


class UndefinedVariableError(EvalError):
    """Lookup of an unbound identifier"""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Undefined variable: {name}")


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    location: int,
    line: int,
    column: int,
    expected: Optional[List[str]] = None,
    got: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Create an immutable parse error structure"""
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'expected': expected or [],
        'got': got,
        'context': context,
        'suggestions': suggestions or []
    }


def format_parse_error(error: Dict) -> str:
    """Format parse error as string"""
    if error['line'] > 0:
        error_msg = f"Parse error at line {error['line']}, column {error['column']}:\n"
    else:
        error_msg = "Parse error:\n"
    error_msg += f"  {error['message']}\n"

    if error['expected']:
        error_msg += f"  Expected: {', '.join(error['expected'])}\n"

    if error['got']:
        error_msg += f"  Got: {error['got']}\n"

    if error['context']:
        error_msg += f"  Context:\n{error['context']}\n"

    if error['suggestions']:
        error_msg += f"  Suggestions:\n"
        for suggestion in error['suggestions']:
            error_msg += f"    - {suggestion}\n"

    return error_msg.rstrip('\n')


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        if i == line_num - 1:  # Error line
            context_parts.append(f"{line_prefix}{lines[i]}")
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")
        else:
            context_parts.append(f"{line_prefix}{lines[i]}")

    return '\n'.join(context_parts)


def generate_suggestions(got: Optional[str], expected: List[str]) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []
    word = (got or "").strip("'")

    if expected == ["keyword"]:
        close = get_close_matches(word, KEYWORDS, n=1)
        if close:
            suggestions.append(f"Did you mean '{close[0]}'?")
        elif word.lstrip('+-').isdigit():
            suggestions.append("Integer literals are written as (val N)")
        elif word:
            suggestions.append("Variables are referenced as (var NAME)")

    if "'then'" in expected or "'else'" in expected:
        suggestions.append("Conditionals are written as (if LEFT RIGHT then EXPR else EXPR)")

    if "'='" in expected or "'in'" in expected:
        suggestions.append("Bindings are written as (let NAME = EXPR in BODY)")

    if "integer" in expected:
        suggestions.append("Only whole numbers such as 42 or -7 are supported")

    return suggestions


class ExprErrorHandler:
    """Builds positioned ParseErrors for one source text"""
    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename

    def make_parse_error(self, message: str, location: Optional[int] = None,
                         expected: Optional[List[str]] = None, got: Optional[str] = None) -> 'ParseError':
        """Create a ParseError located at a character offset of the source"""
        expected = expected or []
        if location is None:
            return ParseError(message, expected=expected, got=got,
                              suggestions=generate_suggestions(got, expected))

        line_num = lineno(location, self.source_text)
        col_num = col(location, self.source_text)
        return ParseError(
            message=message,
            location=location,
            line=line_num,
            column=col_num,
            expected=expected,
            got=got,
            context=get_context_lines(self.source_text, line_num, col_num),
            suggestions=generate_suggestions(got, expected)
        )


class ParseError(InterpreterError):
    """Malformed program text"""
    def __init__(self, message: str, location: int = 0, line: int = 0, column: int = 0,
                 expected: Optional[List[str]] = None, got: Optional[str] = None,
                 context: Optional[str] = None, suggestions: Optional[List[str]] = None):
        self.location = location
        self.line = line
        self.column = column
        self.expected = expected or []
        self.got = got
        self.context = context
        self.suggestions = suggestions or []
        super().__init__(message)

    def __str__(self) -> str:
        error_dict = make_parse_error(
            self.message, self.location, self.line, self.column,
            self.expected, self.got, self.context, self.suggestions
        )
        return format_parse_error(error_dict)
