# API Module - FastAPI backend for the browser bridge and settings page
