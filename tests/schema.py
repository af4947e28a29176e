"""Shared TableQL schema over the test models."""

from tableql import TableQLSchema, many, one, relations

from tests.models import Post, PostComment, User

schema_map = {
    'users': User,
    'posts': Post,
    'comments': PostComment,
    'usersRelations': relations(User, {
        'posts': many(Post),
        'comments': many(PostComment),
    }),
    'postsRelations': relations(Post, {
        'author': one(User, fields=[Post.author_id], references=[User.id]),
        'comments': many(PostComment),
    }),
    'commentsRelations': relations(PostComment, {
        'post': one(Post, fields=[PostComment.post_id], references=[Post.id]),
        'author': one(User, fields=[PostComment.author_id], references=[User.id]),
    }),
}

schema = TableQLSchema(schema_map)
