"""graphtool: Microsoft Graph mailbox and calendar testing tool."""

__version__ = "1.0.0"
