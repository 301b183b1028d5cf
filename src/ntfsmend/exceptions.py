class ValidationError(Exception):
    pass


class FstabError(Exception):
    pass
