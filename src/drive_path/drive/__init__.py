"""Google Drive access: authentication, remote calls and path resolution."""
