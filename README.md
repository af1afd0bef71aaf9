# appscaler

`appscaler` reconciles **AppScaler** resources. An AppScaler names a replica
count and a list of deployments. On every pass the reconciler sets each listed
deployment to that replica count, records `Success` or `Failed` in the
AppScaler's status, and asks to be run again after 30 seconds.

The resources belong to the API group `api.operator.wissam.com`, version
`v1alpha1`.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## The resource

An AppScaler has this shape:

```yaml
apiVersion: api.operator.wissam.com/v1alpha1
kind: AppScaler
metadata:
  name: web-scaler
  namespace: default
spec:
  replicas: 3
  deployments:
    - name: frontend
      namespace: default
    - name: backend
      namespace: shop
status:
  status: Success
```

The types in `appscaler.types` read and write this form:

```python
from appscaler.types import AppScaler

scaler = AppScaler.from_dict({
    "apiVersion": "api.operator.wissam.com/v1alpha1",
    "kind": "AppScaler",
    "metadata": {"name": "web-scaler", "namespace": "default"},
    "spec": {
        "replicas": 3,
        "deployments": [{"name": "frontend", "namespace": "default"}],
    },
})

print(scaler.spec.replicas)   # 3
print(scaler.to_dict())
```

- `AppScaler.from_dict` and `AppScalerList.from_dict` raise `ValueError` when
  `apiVersion` or `kind` is present and does not match.
- `AppScalerSpec` requires `replicas` to be an integer that fits in 32 bits.
- `AppScalerStatus.from_dict` raises `ValueError` for a status other than
  `Success` or `Failed`; an empty or missing status reads as none.
- `AppScalerList`, `AppScalerSpec`, `AppScalerStatus` and `NamespacedName` each
  have the same `from_dict` / `to_dict` pair.
- `ScalerStatus` holds the two status values. `GroupVersion.api_version()` gives
  the `group/version` string, and `GROUP_VERSION` is the group used here.

## The reconciler

`appscaler.controller.AppScalerReconciler(client).reconcile(request)` does one
pass for a `Request(name, namespace)` and returns a `Result`:

- If the AppScaler cannot be read, the pass ends quietly with an empty
  `Result()`.
- Each listed `Deployment` is fetched. A missing deployment raises
  `NotFoundError`.
- Each deployment is set to the requested replica count and saved, then the
  AppScaler's status is set to `Success` and written back. If saving the
  deployment fails, the status is set to `Failed` and the error is raised.
- When every deployment is done, the result has `requeue_after=30.0` seconds.

The reconciler reaches its objects through a `KubeClient`, a protocol with
`get_appscaler`, `get_deployment`, `update_deployment`, `update_status` and
`list_appscalers`. `InMemoryClient` implements it in process: load it with
`add_appscaler` and `add_deployment`, and remove AppScalers with
`delete_appscaler`. It stores and hands out copies, so changes only take effect
through its methods.

```python
from appscaler.controller import AppScalerReconciler, Deployment, InMemoryClient, Request
from appscaler.types import AppScaler, AppScalerSpec, NamespacedName

client = InMemoryClient()
client.add_deployment(Deployment(name="frontend", namespace="default", replicas=1))
client.add_appscaler(AppScaler(
    name="web-scaler", namespace="default",
    spec=AppScalerSpec(replicas=3, deployments=[NamespacedName("frontend", "default")]),
))

result = AppScalerReconciler(client).reconcile(Request("web-scaler", "default"))
print(result.requeue_after)                                                      # 30.0
print(client.get_deployment(NamespacedName("frontend", "default")).replicas)     # 3
```

## Running the manager

`appscaler.manager.Manager(client, options)` runs the reconciler for every
AppScaler the client lists:

- `run_once()` reconciles each AppScaler once and returns a dict of key to
  `Result`; a reconcile that raises is logged and reported as
  `Result(requeue=True)`.
- `start(stop_event)` loops until the event is set, reconciling each AppScaler
  when it is due: after `requeue_after` seconds, after `retry_interval` on a
  failed pass, and checking for work every `poll_interval` seconds. While it
  runs it serves `GET /healthz` and `GET /readyz` on the health probe address,
  answering `200 ok` or `500 check failed`.
- `add_healthz_check` / `add_readyz_check` register checks (a check fails by
  raising); `healthz()` and `readyz()` run them.

The `appscaler-manager` command builds a manager, registers a passing
`healthz` and `readyz` check, and runs until SIGINT or SIGTERM:

```
appscaler-manager --health-probe-bind-address=:8081
```

`parse_args` turns its options into a `ManagerOptions`. Options may be written
with one or two dashes; boolean options take an optional value such as
`--leader-elect=false`.

| Option | Default | Meaning |
| --- | --- | --- |
| `--metrics-bind-address` | `0` | Metrics address; recorded only |
| `--health-probe-bind-address` | `:8081` | Address for the probe server; `0` turns it off |
| `--leader-elect` | off | Recorded only |
| `--metrics-secure` | on | Recorded only |
| `--enable-http2` | off | Recorded only |
| `--zap-devel` | on | Log at debug level unless a level is given |
| `--zap-log-level` | none | `debug`, `info`, `warn`, `error`, `panic`, or a positive number for debug |

## What it does not do

- It does not talk to a Kubernetes API server. The only client provided is
  `InMemoryClient`, and `appscaler-manager` starts with an empty one, so the
  command serves its health probes but has no AppScalers to reconcile. To act
  on a real cluster, supply your own `KubeClient` to `Manager`.
- It serves no metrics endpoint and performs no leader election; the options
  for them are parsed and kept in `ManagerOptions` but not acted on.