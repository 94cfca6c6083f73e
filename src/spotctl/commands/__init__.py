"""Built-in CLI sub-commands for spotctl.

* :mod:`~spotctl.commands.spotify` -- ``connect``, ``status``, ``devices``,
  ``play`` and the other Spotify commands, registered on the root app.
* :mod:`~spotctl.commands.config` -- the ``config`` sub-command group.
"""
