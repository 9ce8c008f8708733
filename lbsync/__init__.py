"""Load Balancer Sync (lbsync).

Applies a declarative load-balancer configuration to a running proxy through
its administrative API:
 - backend server registration (bounded retry per server)
 - health-check parameters
 - load-balancing algorithm
 - connection retry / redispatch policy

Connectivity, algorithm and retry-policy failures abort the run. A server that
cannot be registered is recorded and skipped.
"""
