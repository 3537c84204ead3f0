"""HTTP service around esri_import: settings, session state and the /api/esri router."""
