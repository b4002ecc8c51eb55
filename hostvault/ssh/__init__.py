"""SSH collaborators: process launcher and ssh_config export."""

from hostvault.ssh.config_export import append_ssh_config, render_ssh_config
from hostvault.ssh.launcher import Launcher, SshpassLauncher

__all__ = ["Launcher", "SshpassLauncher", "append_ssh_config", "render_ssh_config"]
