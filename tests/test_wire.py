from chat_client.wire import (
    Reaction,
    is_temp_id,
    message_to_wire,
    parse_message,
)


def test_author_given_as_name_string():
    m = parse_message({'_id': 'a1', 'user': 'Ada', 'userId': 'u1', 'text': 'hi', 'reactions': []})
    assert (m.author_id, m.author_name) == ('u1', 'Ada')


def test_author_given_as_object():
    m = parse_message({'_id': 'a1', 'user': {'_id': 'u9', 'name': 'Grace'}, 'text': 'hi'})
    assert (m.author_id, m.author_name) == ('u9', 'Grace')


def test_author_missing():
    m = parse_message({'_id': 5, 'text': 'hi'})
    assert m.id == '5'
    assert m.author_id is None
    assert m.author_name == 'Unknown'


def test_reply_snapshot_and_reactions():
    m = parse_message({
        '_id': '2',
        'user': 'Ada',
        'userId': 1,
        'text': 'yes',
        'replyTo': {'_id': 1, 'text': 'q?', 'user': 'Bob', 'userId': 2},
        'reactions': [{'emoji': '👍', 'userId': 2}, {'userId': 3}],
    })
    assert m.author_id == '1'
    assert m.reply_to.id == '1'
    assert m.reply_to.author_name == 'Bob'
    assert m.reply_to_id == '1'
    assert m.reactions == [Reaction('👍', '2')]


def test_bare_reply_id_is_kept_without_snapshot():
    m = parse_message({'_id': '2', 'user': 'Ada', 'userId': '1', 'text': 'x', 'replyTo': '77'})
    assert m.reply_to is None
    assert m.reply_to_id == '77'


def test_message_to_wire():
    raw = {
        '_id': '2',
        'user': 'Ada',
        'userId': '1',
        'text': 'yes',
        'timestamp': '2024-05-01T10:00:00.000Z',
        'replyTo': {'_id': '1', 'text': 'q?', 'user': 'Bob', 'userId': '2'},
        'reactions': [{'emoji': '👍', 'userId': '2'}],
    }
    assert message_to_wire(parse_message(raw)) == raw


def test_temp_ids():
    assert is_temp_id('temp-123')
    assert not is_temp_id('123')
    assert not is_temp_id(None)
