"""
Core modules for sdmaterial.

This package contains the core business logic for:
- Server configuration and the model/sampler catalog
- HTTP transport and progress polling
- txt2img request building and generation orchestration
- Normal map synthesis and the material hand-off
"""
