"""Staff attendance package.

Organized by feature modules (attendance, staff, remote) with a thin Flask
controller layer on top of service/repository layers. The attendance
repository is the storage-agnostic port; adapters exist for an in-memory
store and for a remote SharePoint-style list.
"""
