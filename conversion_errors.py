class ConversionError(Exception):
    pass


class SourceUnreadable(ConversionError):
    def __init__(self, source, reason=None):
        super().__init__(f'cannot read image {source}' + (f': {reason}' if reason else ''))
        self.source = source
        self.reason = reason


class InvalidDimensions(ConversionError):
    def __init__(self, width, height, what='image'):
        super().__init__(f'invalid {what} dimensions {width}x{height}')
        self.width = width
        self.height = height


class OutputUnwritable(ConversionError):
    def __init__(self, path, reason=None):
        super().__init__(f'cannot write output {path}' + (f': {reason}' if reason else ''))
        self.path = path
        self.reason = reason


class BudgetExceeded(ConversionError):
    def __init__(self, size, limit):
        super().__init__(f'encoded size {size} exceeds limit of {limit} characters')
        self.size = size
        self.limit = limit
