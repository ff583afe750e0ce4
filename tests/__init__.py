"""sftpctl test suite."""
