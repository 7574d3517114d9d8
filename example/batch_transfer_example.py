from batch7702.adapters.evm.constants import get_chain_config
from batch7702.engine.events import CallbackConfirmationGate
from batch7702.engine.executors import BatchTransferOrchestrator
from batch7702.utils import setup_logger

# Reads EVM_PRIVATE_KEY, EVM_RPC_KEY and BATCH_NETWORK from the environment or .env
network = "sepolia"

transfers = [
    {"recipient": "0x1111111111111111111111111111111111111111", "amount": 10**14},
    {"recipient": "0x2222222222222222222222222222222222222222", "amount": 2 * 10**14},
    {"recipient": "0x3333333333333333333333333333333333333333", "amount": 3 * 10**14},
]


def ask(request):
    print(f"\n{request.title}\n{request.message}")
    for key, value in request.payload.items():
        print(f"  {key}: {value}")
    return input("Approve? [y/N] ").strip().lower() == "y"


async def main():
    setup_logger("INFO")
    orchestrator = BatchTransferOrchestrator.from_env(
        network=network,
        gate=CallbackConfirmationGate(ask),
    )
    return await orchestrator.submit(transfers)


if __name__ == "__main__":
    import asyncio
    tx_hash = asyncio.run(main())
    print("Explorer:", get_chain_config(network).tx_url(tx_hash))
