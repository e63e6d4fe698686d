import os
from dotenv import load_dotenv

from lambdas.slowlog_check.endpoint import RedisEndpoint

# Load REDIS_HOST (and REDIS_PORT / REDIS_SSL) from a .env file for local testing
load_dotenv()

# From https://medium.com/@stockholmux/simulating-a-slow-command-with-node-redis-and-lua-efadbf913cd9
SLOW_SCRIPT = """
local aTempKey = "a-temp-key"
local cycles
redis.call("SET",aTempKey,"1")
redis.call("PEXPIRE",aTempKey, 100)
for i = 0, 1500000, 1 do
    local apttl = redis.call("PTTL",aTempKey)
    cycles = i;
    if apttl == 0 then
        break;
    end
end
return cycles
"""


def inject_slow_query(client) -> int:
    """Runs a Lua loop that spins for ~100ms so it lands in the SLOWLOG. Returns the loop count."""
    return client.eval(SLOW_SCRIPT, 0)


if __name__ == "__main__":
    host = os.environ.get("REDIS_HOST")
    if not host:
        print("❌ ERROR: REDIS_HOST environment variable not set. Please create a .env file.")
        raise SystemExit(1)

    endpoint = RedisEndpoint.resolve(host)
    print(f"--- Injecting a slow EVAL into {endpoint} ---")
    cycles = inject_slow_query(endpoint.connect())
    print(f"✅ Done. The script looped {cycles} times.")
