"""Command-line tools for MindMesh.

``python -m mindmesh.cli`` runs :func:`mindmesh.cli.commands.main`:

- ``ingest --owner ID FILE...`` -- ingest local files for an owner
- ``ask --owner ID [--session ID] [--limit N] QUESTION`` -- chat turn
- ``list --owner ID`` -- list an owner's documents

The CLI uses the same composition root as the web app
(:func:`mindmesh.main.build_components`), so provider selection and
storage are identical.
"""
