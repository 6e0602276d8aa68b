"""
Task subsystem.

Components:
- task_models.py: data structures (Task, SyncMetadata, enums, errors)
- dates.py: date parsing/formatting + due-date buckets
- line_codec.py: Task <-> annotated markdown line (encode / decode / merge)
- task_builder.py: fluent, validated construction of Task records
- task_store.py: in-memory overlay + reconciliation transitions + read views
- task_dispatcher.py: pushes pending entries to the document writer; remote fetch loop
- task_api.py: small high-level helpers used by the rest of the app
"""
