"""Data models shared by the host process and the isolated interpreter."""
