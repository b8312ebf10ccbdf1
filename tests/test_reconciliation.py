from chat_client.reconciliation import ChatState
from chat_client.wire import Reaction, parse_message


def canonical(_id, text, user_id='u1', user='Ada', reply_to=None, reactions=None, timestamp='2024-05-01T10:00:00.000Z'):
    raw = {
        '_id': _id,
        'user': user,
        'userId': user_id,
        'text': text,
        'timestamp': timestamp,
        'replyTo': reply_to,
        'reactions': reactions or [],
    }
    return parse_message(raw)


def test_optimistic_then_ack_then_broadcast_leaves_one_entry():
    state = ChatState('u1', 'Ada')
    entry = state.create_optimistic('hello')
    assert entry.id.startswith('temp-')
    assert entry.is_optimistic
    assert [m.text for m in state.messages] == ['hello']

    state.confirm(entry.id, canonical('abc123', 'hello'))
    state.merge(canonical('abc123', 'hello'))

    assert [m.id for m in state.messages] == ['abc123']
    assert state.messages[0].reactions == []


def test_broadcast_before_ack_leaves_one_entry():
    state = ChatState('u1', 'Ada')
    entry = state.create_optimistic('hello')

    state.merge(canonical('abc123', 'hello'))
    state.confirm(entry.id, canonical('abc123', 'hello'))

    assert [m.id for m in state.messages] == ['abc123']


def test_optimistic_match_keeps_send_position():
    state = ChatState('u1', 'Ada')
    state.create_optimistic('mine')
    state.merge(canonical('o1', 'from bob', user_id='u2', user='Bob'))
    state.merge(canonical('m1', '  mine  '))

    assert [m.id for m in state.messages] == ['m1', 'o1']


def test_two_sends_keep_order_even_when_acks_arrive_reversed():
    state = ChatState('u1', 'Ada')
    a = state.create_optimistic('A')
    b = state.create_optimistic('B')

    state.confirm(b.id, canonical('2', 'B'))
    state.confirm(a.id, canonical('1', 'A'))
    state.merge(canonical('1', 'A'))
    state.merge(canonical('2', 'B'))

    assert [m.text for m in state.messages] == ['A', 'B']
    assert [m.id for m in state.messages] == ['1', '2']


def test_identical_texts_each_confirm_one_entry():
    state = ChatState('u1', 'Ada')
    first = state.create_optimistic('ok')
    second = state.create_optimistic('ok')

    state.merge(canonical('10', 'ok'))
    state.merge(canonical('11', 'ok'))
    state.confirm(first.id, canonical('10', 'ok'))
    state.confirm(second.id, canonical('11', 'ok'))

    assert [m.id for m in state.messages] == ['10', '11']


def test_other_users_messages_append_in_arrival_order():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('3', 'third', user_id='u3'))
    state.merge(canonical('2', 'second', user_id='u2'))
    assert [m.id for m in state.messages] == ['3', '2']


def test_same_text_from_another_user_does_not_confirm_mine():
    state = ChatState('u1', 'Ada')
    state.create_optimistic('hi')
    state.merge(canonical('9', 'hi', user_id='u2', user='Bob'))

    assert len(state.messages) == 2
    assert state.messages[0].is_optimistic
    assert state.messages[1].id == '9'


def test_reply_target_participates_in_match():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('p1', 'question', user_id='u2', user='Bob'))
    state.begin_reply('p1')
    entry = state.create_optimistic('answer')
    assert state.replying_to is None
    assert entry.reply_to.id == 'p1'
    assert entry.reply_to.author_name == 'Bob'

    # same text, no reply target: a different message
    state.merge(canonical('x', 'answer'))
    assert state.messages[1].is_optimistic

    reply = {'_id': 'p1', 'text': 'question', 'user': 'Bob', 'userId': 'u2'}
    state.merge(canonical('r1', 'answer', reply_to=reply))
    assert [m.id for m in state.messages] == ['p1', 'r1', 'x']


def test_exact_id_update_replaces_in_place():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('1', 'one'))
    state.merge(canonical('2', 'two'))
    state.merge(canonical('1', 'one', reactions=[{'emoji': '🔥', 'userId': 'u2'}]))

    assert [m.id for m in state.messages] == ['1', '2']
    assert state.messages[0].reactions == [Reaction('🔥', 'u2')]


def test_reactions_replaced_wholesale():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('m1', 'hi', reactions=[{'emoji': '👍', 'userId': 'u1'}]))

    assert state.apply_reactions('m1', [Reaction('👍', 'u2')])
    assert state.get('m1').reactions == [Reaction('👍', 'u2')]
    assert not state.apply_reactions('missing', [])


def test_local_reaction_toggle():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('m1', 'hi'))

    assert state.toggle_reaction_locally('m1', '😂') == [Reaction('😂', 'u1')]
    assert state.toggle_reaction_locally('m1', '😂') == []
    assert state.toggle_reaction_locally('nope', '😂') is None


def test_reaction_picker_pointer_is_single():
    state = ChatState('u1', 'Ada')
    state.open_reaction_picker('m1')
    state.open_reaction_picker('m2')
    assert state.open_reaction_for == 'm2'
    state.close_reaction_picker()
    assert state.open_reaction_for is None


def test_typing_set_and_label():
    state = ChatState('u1', 'Ada')
    assert state.typing_label() is None

    state.apply_typing('u1', True)
    assert state.typing_label() is None

    state.apply_typing('u2', True)
    state.apply_typing('u2', True)
    assert state.typing_users == {'u1', 'u2'}
    assert state.typing_label() == 'Someone is typing...'

    state.apply_typing('u3', True)
    assert state.typing_label() == 'Multiple people are typing...'

    state.apply_typing('u2', False)
    state.apply_typing('u3', False)
    assert state.typing_label() is None


def test_load_history_replaces_and_keeps_unconfirmed_sends():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('old', 'stale', timestamp='2024-05-01T09:00:00.000Z'))
    state.create_optimistic('still pending')

    state.load_history([
        canonical('1', 'a', timestamp='2024-05-01T10:00:00.000Z'),
        canonical('2', 'b', timestamp='2024-05-01T10:01:00.000Z'),
    ])

    assert [m.id for m in state.messages][:2] == ['1', '2']
    assert state.messages[2].is_optimistic
    assert state.messages[2].text == 'still pending'
    assert len(state.messages) == 3


def test_load_history_drops_sends_it_already_contains():
    state = ChatState('u1', 'Ada')
    state.create_optimistic('made it')
    state.load_history([canonical('5', 'made it')])
    assert [m.id for m in state.messages] == ['5']


def test_load_history_keeps_messages_pushed_during_fetch():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('9', 'pushed late', user_id='u2', timestamp='2024-05-01T10:05:00.000Z'))

    state.load_history([canonical('8', 'in window', timestamp='2024-05-01T10:04:00.000Z')])

    assert [m.id for m in state.messages] == ['8', '9']


def test_load_history_clears_dangling_pointers():
    state = ChatState('u1', 'Ada')
    state.merge(canonical('1', 'a'))
    state.begin_reply('1')
    state.open_reaction_picker('1')

    state.load_history([canonical('2', 'b', timestamp='2024-05-01T11:00:00.000Z')])

    assert state.replying_to is None
    assert state.open_reaction_for is None


def test_failed_send_survives_refetch_when_an_older_message_has_the_same_text():
    state = ChatState('u1', 'Ada')
    state.load_history([canonical('10', 'ok')])
    state.create_optimistic('ok')

    state.load_history([canonical('10', 'ok')])

    assert [m.id for m in state.messages][0] == '10'
    assert len(state.messages) == 2
    assert state.messages[1].is_optimistic
    assert state.messages[1].text == 'ok'


def test_refetch_confirms_a_send_against_a_new_message_only():
    state = ChatState('u1', 'Ada')
    state.load_history([canonical('10', 'ok')])
    state.create_optimistic('ok')

    state.load_history([canonical('10', 'ok'), canonical('11', 'ok', timestamp='2024-05-01T10:02:00.000Z')])

    assert [m.id for m in state.messages] == ['10', '11']
