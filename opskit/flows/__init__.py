"""Operator flows, one module per area.

A flow takes a :class:`~opskit.console.Console` (and, for AWS areas, an
:class:`~opskit.aws.AwsContext`), prints its progress and returns the process
exit code. Failures it cannot handle are raised as
:class:`~opskit.errors.OpsKitError` for the CLI to report.
"""
