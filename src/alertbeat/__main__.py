from alertbeat.cli import cli

cli()
