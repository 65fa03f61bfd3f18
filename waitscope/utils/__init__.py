"""Settings, logging and timing helpers shared by every waitscope module."""
