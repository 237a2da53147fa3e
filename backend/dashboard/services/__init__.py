# Services package init
"""
Dashboard Backend — Services Layer
====================================

Service Inventory:
    - BlobStorage: writes profile picture blobs and streams them back
    - UserRecordStore: user rows, in particular the `image` path column
    - SessionVerifier: request credentials → signed-in user
    - ProfileImageService: orchestrates upload and serve, applies access policy
"""
