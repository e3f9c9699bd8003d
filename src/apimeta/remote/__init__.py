"""Remote description fetching."""

from apimeta.remote.contents import ContentsClient, GitHubContentsClient, RemoteEntry

__all__ = ["ContentsClient", "GitHubContentsClient", "RemoteEntry"]
