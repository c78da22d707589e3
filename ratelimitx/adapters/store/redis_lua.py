"""Redis Lua scripts for the counter store.

Each script runs as one atomic server-side operation, so concurrent callers
from any number of processes can neither lose increments nor interleave a
read with someone else's write.
"""

# KEYS[1]: counter key
# ARGV[1]: delta
# ARGV[2]: ttl in milliseconds
# Returns {count, pttl}.
INCREMENT_WITH_EXPIRY_SCRIPT = """
    local count = redis.call('INCRBY', KEYS[1], ARGV[1])
    local ttl = redis.call('PTTL', KEYS[1])

    -- A key without expiry was just created by INCRBY: arm the window.
    -- Keys that already carry a TTL keep it, so the window never slides.
    if ttl < 0 then
        redis.call('PEXPIRE', KEYS[1], ARGV[2])
        ttl = tonumber(ARGV[2])
    end

    return {count, ttl}
"""

# KEYS[1]: state key
# ARGV[1]: expected current value ('' means the key must be absent)
# ARGV[2]: new value
# ARGV[3]: ttl in milliseconds
# Returns 1 on swap, 0 when the current value did not match.
COMPARE_AND_SWAP_SCRIPT = """
    local current = redis.call('GET', KEYS[1])

    if ARGV[1] == '' then
        if current then
            return 0
        end
    elseif current ~= ARGV[1] then
        return 0
    end

    redis.call('SET', KEYS[1], ARGV[2], 'PX', ARGV[3])
    return 1
"""
