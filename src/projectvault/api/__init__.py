# Project Vault - HTTP API
