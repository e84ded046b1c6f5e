"""
chrome_agent/utils/exceptions.py

Custom exceptions for the project.

Connection errors are terminal for in-flight work, protocol errors carry the
remote message verbatim, ref errors are fixed by taking a new snapshot.
"""


class ChromeAgentError(Exception):
    """
    Base class for every error raised by chrome_agent.
    """
    pass


# Connection ______________________________________________________________________________________

class CDPConnectionError(ChromeAgentError):
    """
    The transport to the browser is unusable.
    """
    pass


class CDPNotConnectedError(CDPConnectionError):
    """
    A command was sent while the socket is not open.
    """

    def __init__(self, message: str = "CDP socket not open") -> None:
        super().__init__(message)


class CDPSocketClosedError(CDPConnectionError):
    """
    The socket closed (or errored) while work was still pending.
    """

    def __init__(self, message: str = "CDP socket closed") -> None:
        super().__init__(message)


class CDPDiscoveryError(CDPConnectionError):
    """
    The /json/version metadata endpoint could not be used to find the socket address.
    """
    pass


# Protocol ________________________________________________________________________________________

class CDPProtocolError(ChromeAgentError):
    """
    The browser answered a command with an error payload.
    """

    def __init__(self, message: str, method: str | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.method = method
        self.code = code


# References ______________________________________________________________________________________

class RefError(ChromeAgentError):
    """
    A reference token could not be used.
    """
    pass


class InvalidRefError(RefError):
    """
    The token is not of the form e<N> (optionally prefixed with @).
    """

    def __init__(self, ref: str) -> None:
        super().__init__(f'Invalid ref: "{ref}"')
        self.ref = ref


class StaleRefError(RefError):
    """
    The token is well formed but absent from the current reference map.
    """

    def __init__(self, ref: str) -> None:
        super().__init__(f'Ref "{ref}" not found, run snapshot() first')
        self.ref = ref


# Actions, navigation, tabs _______________________________________________________________________

class ActionError(ChromeAgentError):
    """
    An element action could not run (no geometry, no scriptable handle).
    """
    pass


class NavigationError(ChromeAgentError):
    """
    The browser refused a navigation.
    """
    pass


class TabError(ChromeAgentError):
    """
    A target could not be created, attached or found.
    """
    pass


class TabNotFoundError(TabError):
    """
    The tab id is unknown, or no tab is currently selected.
    """
    pass


# Cookies, screenshots ____________________________________________________________________________

class CookieError(ChromeAgentError):
    """
    Base class for cookie failures.
    """
    pass


class CookieImportError(CookieError):
    """
    Cookie JSON could not be parsed or a cookie could not be set.
    """
    pass


class ScreenshotError(ChromeAgentError):
    """
    The browser returned no image data.
    """
    pass
