"""Material requirements and reservation engine for a manufacturing ERP."""
