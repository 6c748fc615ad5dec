"""
Chaos 'actions' module.

This module contains *actions* that change the state of a containerised
ledger test network: creating, starting, stopping and removing nodes, and
injecting network faults (partitions, packet loss) between them.

*Actions* are meant to be composed into test scenarios. A typical scenario
builds role configurations, brings a topology up on a virtual network,
discovers node addresses, applies chaos, inspects exit codes and logs and
finally tears everything down.

Unlike probes, *actions* do not hide engine failures. An action logs what
went wrong and re-raises, leaving the decision to retry to the scenario.

Things to consider when adding or modifying *actions*:
1. *Actions* should be usable outside of chaos experiments for other kinds
   of integration or systems testing.
2. *Actions* that are meant to be undone later (partition_nodes,
   inject_packet_loss) record what they did in a state file in the chaos
   temp dir (see chaoshornet.common.get_chaos_temp_dir) so the undoing action
   can run in a later phase or another process.
"""
