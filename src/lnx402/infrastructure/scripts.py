"""Central registry for Redis Lua scripts used by the facilitator.

Scripts are registered by name and executed with EVALSHA. They return a
two-element array whose first element is a numeric status code:

    - 0: Already present - The key existed before this call; nothing was
         written. The second element contains the stored value.

    - 1: Inserted - This call created the key. The second element contains
         the value that was written.

"consume_settlement" is the replay guard's compare-and-insert: it writes the
settlement record only if no record exists for the key, optionally with a
TTL (ARGV[3] > 0), and indexes the key by consumption time (ARGV[2]).
Records written with a TTL are also scored by deadline in the expiry index
(KEYS[3]). Each insert first drops up to PRUNE_BATCH entries whose deadline
has passed, so the indexes shrink along with the records.
"""

CONSUME_ALREADY_PRESENT = 0
CONSUME_INSERTED = 1

PRUNE_BATCH = 500

FACILITATOR_SCRIPTS = {
    "consume_settlement": """
        local record_key = KEYS[1]
        local index_key = KEYS[2]
        local expiry_key = KEYS[3]
        local record = ARGV[1]
        local score = tonumber(ARGV[2])
        local ttl = tonumber(ARGV[3])

        local expired = redis.call(
            'ZRANGEBYSCORE', expiry_key, '-inf', score, 'LIMIT', 0, %(prune_batch)d
        )
        for _, key in ipairs(expired) do
            redis.call('DEL', key)
            redis.call('ZREM', index_key, key)
            redis.call('ZREM', expiry_key, key)
        end

        local existing = redis.call('GET', record_key)
        if existing then
            return {0, existing}
        end

        if ttl and ttl > 0 then
            redis.call('SET', record_key, record, 'EX', ttl)
            redis.call('ZADD', expiry_key, score + ttl, record_key)
        else
            redis.call('SET', record_key, record)
        end
        redis.call('ZADD', index_key, score, record_key)
        return {1, record}
    """
    % {"prune_batch": PRUNE_BATCH},
}
