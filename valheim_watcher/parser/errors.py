"""Parse failures raised by the event extractor."""


class ParseError(Exception):
    """A line matched a recognised shape but one of its fields is malformed."""

    kind = "parse"

    def __init__(self, message: str, line: str, value: str):
        super().__init__(message)
        self.line = line
        self.value = value


class DateTimeParseError(ParseError):
    kind = "datetime"

    def __init__(self, line: str, value: str):
        super().__init__(f"Unable to parse date/time: {value!r}", line, value)


class IntegerParseError(ParseError):
    kind = "integer"

    def __init__(self, line: str, value: str):
        super().__init__(f"Unable to parse expected integer value: {value!r}", line, value)


class FloatParseError(ParseError):
    kind = "float"

    def __init__(self, line: str, value: str):
        super().__init__(f"Unable to parse expected float value: {value!r}", line, value)
