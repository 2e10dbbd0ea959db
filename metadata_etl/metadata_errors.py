""" TCGA metadata ETL errors """


class MissingColumnError(RuntimeError):
    """ Raised when a flatten, key or join step references a column not present in the table header """
    def __init__(self, column: str, header: tuple[str, ...] = ()) -> None:
        super().__init__(f'Column "{column}" not found in table header: {list(header)}')
        self.column: str = column
        self.header: tuple[str, ...] = tuple(header)


class InvalidIdentifierError(RuntimeError):
    """ Raised when an identifier is too short (or not a string) to derive a patient key from """
    def __init__(self, identifier: any) -> None:
        super().__init__(f'Unable to derive patient key from identifier {identifier!r}')
        self.identifier: any = identifier


class UnknownColumnError(RuntimeError):
    """ Raised when output column selection requests columns absent from the unified table """
    def __init__(self, columns: list[str]) -> None:
        super().__init__(f'Requested output column(s) not found in unified table: {columns}')
        self.columns: list[str] = list(columns)


class NestedValueError(RuntimeError):
    """ Raised when a nested column holds a value that cannot be read as an embedded table """
    def __init__(self, column: str, value: any) -> None:
        super().__init__(f'Value of type "{type(value).__name__}" in nested column "{column}" is not a table')
        self.column: str = column
        self.value: any = value
