#The Mock Client script simulates a dashboard attached to the host.
#It registers a device, then follows the live channel, folding every
#snapshot into a local topology graph and a short chart history.

# Mock_Client.py
import asyncio

import Config
from Connection import ConnectionManager
from Errors import ChannelError
from History import SnapshotHistory
from Registration_Client import DeviceView, RegistrationClient
from Topology import TopologySynchronizer


def summarize(msg: dict, topology: TopologySynchronizer) -> str:
    stats = msg.get("networkStats", {})
    online = sum(1 for n in topology.nodes.values() if n.status == "online")
    return (
        f"{msg.get('type')} devices={stats.get('totalDevices')} "
        f"online={stats.get('onlineDevices')} cameras={stats.get('activeCameras')} "
        f"motion={stats.get('motionDetected')} nodes={len(topology.nodes)} nodes_online={online}"
    )


async def run(device_type: str = "temperature") -> None:
    topology = TopologySynchronizer()
    history = SnapshotHistory()
    manager = ConnectionManager(url=Config.WS_URL)

    print(f"[CLIENT] API: {Config.API_URL}")
    print(f"[CLIENT] Channel: {Config.WS_URL}  Policy: {topology.policy}")

    client = RegistrationClient(Config.API_URL)
    view = DeviceView(client)

    device_id = await view.register(device_type)
    if device_id:
        print(f"[OK] registered {device_id} total={view.stats.totalDevices} (optimistic)")
    else:
        print(f"[ERR] register failed: {view.error}")

    def on_message(msg: dict) -> None:
        created = topology.apply(msg)
        view.apply(msg)
        history.feed(msg)
        for node_id in created:
            node = topology.nodes[node_id]
            print(f"[NODE] {node_id} -> {node.connections} at ({node.x:.0f}, {node.y:.0f})")
        print(f"[OK] {summarize(msg, topology)}")

    def on_error(err: ChannelError) -> None:
        print(f"[ERR] {err}")

    manager.subscribe(on_message, on_error)
    manager.start()
    try:
        await manager.wait()
    finally:
        await manager.stop()
        await client.aclose()


def main():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("[CLIENT] stopped")


if __name__ == "__main__":
    main()
