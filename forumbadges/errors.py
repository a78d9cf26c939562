class BadgeCriteriaError(Exception):
    '''Base class for badge criteria errors.'''


class CourseModuleNotFoundError(BadgeCriteriaError):
    '''A referenced course module (or its instance) no longer exists.'''

    def __init__(self, cmid: int, modname: str | None = None) -> None:
        self.cmid = cmid
        self.modname = modname
        what = f'{modname} course module' if modname else 'course module'
        super().__init__(f'No {what} with id {cmid}')


class InvalidPluginStateError(BadgeCriteriaError):
    '''A module type the criterion relies on is not installed or is disabled.'''

    def __init__(self, modname: str) -> None:
        self.modname = modname
        super().__init__(f'Module "{modname}" is not installed or not enabled')


class InvalidCriteriaParamsError(BadgeCriteriaError, ValueError):
    '''Stored criterion params (or a query built from them) are malformed.'''
