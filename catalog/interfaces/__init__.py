# noqa: D104 - package initialization
