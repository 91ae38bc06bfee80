"""Asynchronous download/separation task orchestration.

A submission claims the identifier in :class:`TaskStatusStore`, then a pool
worker runs :class:`PipelineOrchestrator` (prepare workspace, download,
separate, clean up). Progress is only ever published through the status
store and, when configured, mirrored into the ``media_tasks`` table.
"""
