"""python -m agentloop"""

from agentloop.main import cli

cli()
