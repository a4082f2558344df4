"""One module per ``paperlauncher`` subcommand."""
