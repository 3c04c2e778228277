# flowguard/errors.py
"""
Exceptions raised while turning raw text into a workflow document.

`analyze()` converts every one of them into report data; they only escape
when the parser is used directly.
"""


class FlowGuardError(Exception):
    """Base class for analyzer errors."""

    def report_message(self) -> str:
        return str(self)


class ParseError(FlowGuardError):
    """Raw input is not syntactically valid JSON."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def report_message(self) -> str:
        return f"Invalid JSON format: {self.message}"


class EmptyInputError(ParseError):
    """Input was empty or whitespace only."""

    def __init__(self):
        super().__init__("Please provide JSON input")

    def report_message(self) -> str:
        return self.message


class ShapeError(FlowGuardError):
    """Parsed fine, but carries none of the attributes of a workflow export."""

    def __init__(self, message: str = "This doesn't appear to be an n8n workflow file"):
        super().__init__(message)


class NestingDepthError(FlowGuardError):
    """Valid JSON, but nested deeper than the parser can hold in memory."""

    def __init__(self, limit: int):
        super().__init__(f"Document is nested too deeply to analyze (limit {limit} levels)")
        self.limit = limit
