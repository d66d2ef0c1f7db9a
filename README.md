# httpaas

A small "hosting as a service" dashboard. It is a Flask web server. Its
endpoints put static web sites on their own VirtualBox virtual machines and
make them reachable by name through a BIND name server.

For each new site, httpaas does the following:

1. It picks the lowest free address in `192.168.10.30`–`192.168.10.254`.
2. It creates and boots a VM with `VBoxManage`:
   - 512 MB of RAM and one CPU.
   - The template disk attached as `multiattach`.
   - A NAT adapter that forwards host port `2200 + last octet` to the VM's
     port 22.
   - A host-only adapter on `VirtualBox Host-Only Ethernet Adapter #2`.
3. It waits for SSH on `localhost:<forwarded port>`. It tries up to 24 times,
   5 seconds apart.
4. Over SSH, it sets the hostname to `<hostname>.cloud.local`, updates
   `/etc/hosts`, and writes `/etc/network/interfaces` with a static address on
   `enp0s8`. It then restarts networking and waits 5 seconds.
5. On the name server (`192.168.10.10`) it does the following:
   - Replaces the `A` record and the `www.` `CNAME` record for the hostname in
     `/etc/bind/db.cloud.local`.
   - Runs `/usr/local/bin/bump-serial.sh`.
   - Reloads `bind9`.
6. It uploads the site ZIP over SFTP to `/tmp/site.zip` and unpacks it. It
   copies the contents of the archive's top-level directory into
   `/var/www/html`, so the ZIP should hold one top-level folder.

Each remote command runs through `sudo -S bash -c`. The sudo password is
piped in.

Progress messages go to the process log. They are also streamed to anyone
listening on `/logs` as server-sent events.

## Requirements

- VirtualBox, with `VBoxManage` on the `PATH`.
- A template disk for the web-server VMs.
- A name server VM called `ns` that runs BIND and has the bump-serial script
  installed.
- An SSH key and user that both the name server and the template accept. The
  user must be able to use sudo.

## Configuration

Settings are read from environment variables when the modules are imported.

| Variable               | Default                                  | Used for                           |
|------------------------|------------------------------------------|------------------------------------|
| `HTTPAAS_SSH_KEY`      | `~/.ssh/cloud_key`                       | Private key for SSH and SFTP       |
| `HTTPAAS_SSH_USER`     | `admin`                                  | SSH login user                     |
| `HTTPAAS_SSH_PASSWORD` | `placeholder`                            | Password piped to `sudo -S`        |
| `HTTPAAS_BASE_DISK`    | `~/VirtualBox VMs/ApacheTemplate.vdi`    | Disk attached to new VMs           |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running

```
httpaas
```

This logs at INFO level and serves the application on `0.0.0.0:8081`.

The dashboard page is rendered from `templates/index.html`. The path is
relative to the working directory, so start the command from the directory
that holds `templates/` (see "What is not included").

## Endpoints

| Route        | Method | Behaviour                                                                 |
|--------------|--------|---------------------------------------------------------------------------|
| `/`          | any    | Renders `index.html` with `instances`. Unknown paths render it too        |
| `/provision` | POST   | Multipart form with `hostname` and `zipfile`. Creates a site, then redirects to `/` |
| `/delete`    | any    | Field `hostname`. Removes the DNS records and the VM, then redirects to `/` |
| `/rename`    | POST   | Fields `old_hostname` and `new_hostname`. Answers an empty `200`          |
| `/zone`      | any    | Plain-text contents of the zone file                                      |
| `/startns`   | POST   | Boots the `ns` VM headless, then redirects to `/`                         |
| `/logs`      | GET    | `text/event-stream` of progress messages                                  |

Other methods on `/provision`, `/rename` and `/startns` redirect to `/` with
status 303.

Errors are answered in plain text with these statuses:

- 400 when a required field is missing.
- 404 when renaming an unknown instance.
- 500 when a step fails.

## Using it as a library

```python
from httpaas.app import create_app
from httpaas.logs import LogBroadcaster
from httpaas.state import InstanceStore

app = create_app(InstanceStore(), LogBroadcaster(), "templates")
app.run(port=8081)
```

All three arguments of `create_app` are optional.

The modules are:

- `httpaas.provision`
  - `provision_instance`, `rename_instance` and `delete_instance` hold the
    workflows.
  - `ssh_port_for_ip` gives the forwarded SSH port.
  - `configure_command` and `rename_command` build the remote shell commands.
  - Failures raise `ProvisionError`. Its `status` attribute holds the HTTP
    status to report.
  - `delete_instance` ignores failures while removing DNS records and the VM.
- `httpaas.bind`
  - `next_ip` returns the lowest free address, or `None` when none is left.
  - `add_record` and `remove_record` edit the zone.
  - `add_record_commands` and `remove_record_commands` return the commands
    that these two run.
  - `read_zone` returns the zone file.
  - Failures raise `DNSError`.
- `httpaas.vm`
  - `create_vm`, `delete_vm`, `start_vm` and `remove_nat_adapter` wrap
    `VBoxManage`.
  - `create_vm_commands` lists the invocations that `create_vm` runs.
  - Failures raise `VBoxError`. `delete_vm` ignores failures.
- `httpaas.ssh`
  - `connect`, `run_ssh`, `run_ssh_output`, `copy_file` and `wait_for_ssh`
    talk to the VMs with paramiko.
  - `wrap_command` builds the sudo wrapper.
  - Failures raise `SSHError`.
- `httpaas.state`
  - `Instance` is a frozen record: `hostname`, `vm_name`, `ip`, `created_at`.
  - `InstanceStore` is a thread-safe map of them, with the methods `add`,
    `get`, `pop`, `instances`, `ips` and `rename`.
- `httpaas.logs`
  - `LogBroadcaster` fans messages out to subscribed queues. It drops a
    message for a client whose buffer of 10 is full.
  - `format_event` encodes one server-sent event.

## What is not included

- **No page template.** `index.html` is not shipped. You must provide
  `templates/index.html` (or pass another `template_folder`) that renders the
  `instances` list.
- **No persistence.** Instances are kept in memory only and are forgotten when
  the server restarts. VMs and DNS records created earlier stay in place but
  no longer appear on the dashboard.
- **No automatic NAT removal.** `remove_nat_adapter` exists but no workflow
  calls it.