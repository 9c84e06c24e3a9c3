"""Bridge layer between packsmith and its remote collaborators.

Modules
-------
controller
    ``ControllerClient`` protocol and the httpx client for package and
    function records on the control plane.
storage
    ``StorageClient`` protocol and the httpx client for the blob store,
    including the proxy/external address split.
memory
    In-memory implementations of both protocols.
"""
